import json
import unittest
from typing import Any
from unittest.mock import patch

import httpx

from mongolens import query as query_module
from mongolens.llm import LLMClient, LLMConfig, LLMResponseError
from mongolens.models import CollectionSchema, DatabaseSchema, FieldInfo


def _make_response(content: Any) -> httpx.Response:
    payload = content if isinstance(content, str) else json.dumps(content)
    return httpx.Response(
        status_code=200,
        json={"choices": [{"index": 0, "message": {"role": "assistant", "content": payload}}]},
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
    )


SCHEMA = DatabaseSchema(
    database_name="shop",
    collections=[
        CollectionSchema(
            collection_name="orders",
            fields={"status": FieldInfo("enum", values=["new", "paid"], required=True)},
            total_documents=3,
        )
    ],
)


class QueryGenerationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = LLMClient(config=LLMConfig())
        self.addCleanup(self.client.close)

    def test_generate_query_grounds_prompt_in_schema(self) -> None:
        captured: list[dict[str, Any]] = []

        def _fake_post(_: str, json: dict[str, Any]) -> httpx.Response:
            captured.append(json)
            return _make_response(
                {"mongoQuery": 'db.orders.find({"status": "paid"})', "explanation": "Paid orders."}
            )

        with patch.object(self.client._client, "post", side_effect=_fake_post):
            result = query_module.generate_query(
                "  which orders are paid? ",
                SCHEMA,
                self.client,
                context={"schemaDescription": "A shop"},
            )

        self.assertEqual(result.mongo_query, 'db.orders.find({"status": "paid"})')
        self.assertEqual(result.to_dict()["explanation"], "Paid orders.")
        messages = captured[0]["messages"]
        self.assertEqual(messages[-1], {"role": "user", "content": "which orders are paid?"})
        grounding = json.loads(messages[1]["content"])
        self.assertEqual(grounding["schema"]["collections"][0]["collectionName"], "orders")
        self.assertEqual(grounding["context"], {"schemaDescription": "A shop"})

    def test_empty_question_rejected(self) -> None:
        with patch.object(self.client._client, "post") as post:
            with self.assertRaises(ValueError):
                query_module.generate_query("   ", SCHEMA, self.client)
        post.assert_not_called()

    def test_reply_without_query_is_rejected(self) -> None:
        with patch.object(self.client._client, "post", return_value=_make_response({"explanation": "?"})):
            with self.assertRaises(LLMResponseError):
                query_module.generate_query("anything", SCHEMA.to_dict(), self.client)

    def test_generate_context(self) -> None:
        reply = {
            "schemaDescription": "Orders of a shop",
            "relationships": [],
            "sampleQueries": ["How many orders are paid?"],
            "collections": [{"name": "orders", "description": "Orders", "fields": [{"name": "status"}]}],
        }
        with patch.object(self.client._client, "post", return_value=_make_response(reply)):
            context = query_module.generate_context(SCHEMA, self.client)
        self.assertEqual(context["schemaDescription"], "Orders of a shop")


if __name__ == "__main__":
    unittest.main()
