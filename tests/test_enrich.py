import json
import unittest
from typing import Any
from unittest.mock import patch

import httpx

from mongolens.enrich import EnrichmentError, FieldEnricher
from mongolens.llm import LLMClient, LLMConfig
from mongolens.models import FieldInfo


def _make_response(content: Any, status_code: int = 200) -> httpx.Response:
    payload = content if isinstance(content, str) else json.dumps(content)
    return httpx.Response(
        status_code=status_code,
        json={"choices": [{"index": 0, "message": {"role": "assistant", "content": payload}}]},
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
    )


FIELDS = {
    "status": FieldInfo("enum", values=["active", "closed"], required=True),
    "owner": FieldInfo("ObjectId", required=True),
    "amount": FieldInfo("number", required=False),
}


def _record(field: str, importance: int = 5) -> dict[str, Any]:
    return {"field": field, "semanticMeaning": f"meaning of {field}", "importance": importance, "tags": [field]}


class FieldEnricherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = LLMClient(config=LLMConfig())
        self.addCleanup(self.client.close)
        self.enricher = FieldEnricher(self.client)

    def test_prompt_carries_collection_and_field_map(self) -> None:
        prompt = self.enricher.build_prompt(FIELDS, "goals")
        self.assertEqual(prompt["messages"][0]["role"], "system")
        body = json.loads(prompt["messages"][1]["content"])
        self.assertEqual(body["collectionName"], "goals")
        self.assertEqual(body["fields"]["status"]["values"], ["active", "closed"])

    def test_missing_record_leaves_explicit_gap(self) -> None:
        reply = {"fields": [_record("amount", 9), _record("status", 7)]}
        with patch.object(self.client._client, "post", return_value=_make_response(reply)):
            records = self.enricher.enrich(FIELDS, "goals")

        self.assertEqual([record.field for record in records], ["status", "amount"])
        self.assertEqual(records[0].importance, 7)
        self.assertNotIn("owner", [record.field for record in records])

    def test_accepts_bare_array_and_drops_unknown_fields(self) -> None:
        reply = [_record("status"), _record("ghost"), _record("status", 1), _record("owner"), _record("amount")]
        with patch.object(self.client._client, "post", return_value=_make_response(reply)):
            with self.assertLogs("mongolens.enrich", level="WARNING") as logs:
                records = self.enricher.enrich(FIELDS, "goals")

        self.assertEqual([record.field for record in records], ["status", "owner", "amount"])
        self.assertEqual(records[0].importance, 5)
        self.assertTrue(any("ghost" in message for message in logs.output))

    def test_http_failure_raises_enrichment_error(self) -> None:
        with patch.object(self.client._client, "post", return_value=_make_response({}, status_code=503)):
            with self.assertRaises(EnrichmentError) as caught:
                self.enricher.enrich(FIELDS, "goals")
        self.assertEqual(caught.exception.collection_name, "goals")
        self.assertIsInstance(caught.exception.__cause__, httpx.HTTPStatusError)

    def test_empty_field_map_skips_the_call(self) -> None:
        with patch.object(self.client._client, "post") as post:
            self.assertEqual(self.enricher.enrich({}, "goals"), [])
        post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
