import datetime
import json
import tempfile
import unittest
from pathlib import Path

from bson import ObjectId

from mongolens import utils
from mongolens.config import ConfigurationError, Settings, load_settings
from mongolens.io import JSONCollection
from mongolens.models import CollectionSchema, DatabaseSchema, FieldEnrichment, FieldInfo
from mongolens.store import ArtifactStore


class JSONRepairTests(unittest.TestCase):
    def test_valid_json_is_untouched(self) -> None:
        self.assertEqual(utils.parse_json_lenient('{"a": "b, c: d"}'), {"a": "b, c: d"})

    def test_quotes_bare_keys_and_strips_trailing_commas(self) -> None:
        self.assertEqual(
            utils.parse_json_lenient('{fields: [{field: "a", tags: ["x",],},]}'),
            {"fields": [{"field": "a", "tags": ["x"]}]},
        )

    def test_string_values_are_left_alone(self) -> None:
        self.assertEqual(
            utils.parse_json_lenient('{"semanticMeaning": "Stored as text, format: ISO", "tags": ["a",],}'),
            {"semanticMeaning": "Stored as text, format: ISO", "tags": ["a"]},
        )
        self.assertEqual(
            utils.sanitize_json('{note: "say \\"hi\\", x: 1,]", n: 2,}'),
            '{"note": "say \\"hi\\", x: 1,]", "n": 2}',
        )

    def test_other_damage_is_not_repaired(self) -> None:
        with self.assertRaises(json.JSONDecodeError):
            utils.parse_json_lenient("{'single': 'quotes'}")
        with self.assertRaises(json.JSONDecodeError):
            utils.parse_json_lenient('{"a": 1')

    def test_stable_hash(self) -> None:
        self.assertEqual(utils.stable_hash([{"b": 1, "a": 2}]), utils.stable_hash([{"a": 2, "b": 1}]))


class ModelTests(unittest.TestCase):
    def test_companions_must_match_type(self) -> None:
        with self.assertRaises(ValueError):
            FieldInfo("string", items=FieldInfo("string"))
        with self.assertRaises(ValueError):
            FieldInfo("array", values=["a"])
        with self.assertRaises(ValueError):
            FieldInfo("text")

    def test_database_schema_serialisation(self) -> None:
        schema = DatabaseSchema(
            database_name="shop",
            collections=[
                CollectionSchema(
                    collection_name="orders",
                    fields={
                        "status": FieldInfo("enum", values=["new", "paid"], required=True),
                        "lines": FieldInfo(
                            "array",
                            items=FieldInfo("object", properties={"sku": FieldInfo("string")}),
                            required=False,
                        ),
                        "meta": FieldInfo("object", properties={}, additional_properties=FieldInfo("number")),
                    },
                    total_documents=12,
                    enrichment=[FieldEnrichment("status", "Payment state", 9, ["billing"])],
                )
            ],
        )
        data = schema.to_dict()
        collection = data["collections"][0]
        self.assertEqual(data["databaseName"], "shop")
        self.assertEqual(collection["totalDocuments"], 12)
        self.assertEqual(collection["fields"]["meta"]["additionalProperties"], {"type": "number"})
        self.assertNotIn("required", collection["fields"]["meta"])
        self.assertEqual(collection["enrichment"][0]["semanticMeaning"], "Payment state")
        self.assertEqual(DatabaseSchema.from_dict(json.loads(json.dumps(data))), schema)
        self.assertIsNone(schema.collection("missing"))


class JSONCollectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tempdir.cleanup)
        self.root = Path(self.tempdir.name)

    def test_reads_extended_json_array(self) -> None:
        path = self.root / "users.json"
        documents = [
            {
                "_id": {"$oid": "65a1f0c2e4b0a1b2c3d4e5f6"},
                "joined": {"$date": "2024-01-02T03:04:05Z"},
                "name": "user" + "x" * i,
            }
            for i in range(5)
        ]
        path.write_text(json.dumps(documents, indent=1))
        collection = JSONCollection(path)

        loaded = list(collection.find({}, limit=3))
        self.assertEqual(collection.name, "users")
        self.assertEqual(len(loaded), 3)
        self.assertIsInstance(loaded[0]["_id"], ObjectId)
        self.assertIsInstance(loaded[0]["joined"], datetime.datetime)
        self.assertEqual(collection.count_documents({}), 5)
        self.assertEqual(collection.options(), {})

    def test_reads_jsonl(self) -> None:
        path = self.root / "events.jsonl"
        path.write_text('{"kind": "a"}\n\n{"kind": "b"}\n')
        self.assertEqual([doc["kind"] for doc in JSONCollection(path).find()], ["a", "b"])

    def test_rejects_filters_and_non_objects(self) -> None:
        path = self.root / "values.json"
        path.write_text("[1, 2]")
        collection = JSONCollection(path)
        with self.assertRaises(ValueError):
            list(collection.find({"a": 1}))
        with self.assertRaises(ValueError):
            list(collection.find())


class ArtifactStoreTests(unittest.TestCase):
    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            store = ArtifactStore(Path(tempdir) / "data")
            self.assertIsNone(store.load("shop"))
            path = store.save("shop", {"databaseName": "shop", "collections": []})
            self.assertEqual(path.name, "shop.json")
            self.assertEqual(store.load("shop"), {"databaseName": "shop", "collections": []})
            store.save("shop", {"databaseName": "shop", "collections": [1]})
            self.assertEqual(store.load("shop")["collections"], [1])

    def test_keys_are_made_filesystem_safe(self) -> None:
        store = ArtifactStore(Path("data"))
        self.assertEqual(store.path_for("../etc/passwd").name, "etc_passwd.json")
        with self.assertRaises(ValueError):
            store.path_for("..")


class SettingsTests(unittest.TestCase):
    def test_yaml_and_environment(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            path = Path(tempdir) / "mongolens.yaml"
            path.write_text(
                "mongodb_uri: mongodb://file/db\n"
                "collections: [goals, users]\n"
                "sample_size: 50\n"
                "llm:\n  model: local-model\n  temperature: 0.1\n"
                "models:\n  users:\n    name: String\n"
            )
            settings = load_settings(path, environ={"MONGODB_URI": "mongodb://env/db", "OPENAI_API_KEY": "k"})

        self.assertEqual(settings.mongodb_uri, "mongodb://env/db")
        self.assertEqual(settings.collections, ["goals", "users"])
        self.assertEqual(settings.sample_size, 50)
        self.assertEqual(settings.llm.model, "local-model")
        self.assertEqual(settings.llm.api_key, "k")
        self.assertEqual(settings.models, {"users": {"name": "String"}})

    def test_require_uri(self) -> None:
        settings = load_settings(None, environ={})
        with self.assertRaises(ConfigurationError):
            settings.require_uri()
        self.assertEqual(Settings(mongodb_uri="mongodb://x").require_uri(), "mongodb://x")

    def test_rejects_non_mapping_file(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            path = Path(tempdir) / "bad.yaml"
            path.write_text("- a\n- b\n")
            with self.assertRaises(ValueError):
                load_settings(path, environ={})
            path.write_text("sample_size: 0\n")
            with self.assertRaises(ValueError):
                load_settings(path, environ={})


if __name__ == "__main__":
    unittest.main()
