"""Tests for the recommendation service client and response parsing."""

import json

import httpx

from edgecal.services.agent.llm import AnthropicRecommendationService, parse_recommendations

RECOMMENDATION = {
    "type": "weight_adjustment",
    "priority": "high",
    "title": "Reduce weather_wind weight",
    "description": "Wind edge is overweighted for dome-adjacent games",
    "evidence": ["4 of 12 wind-led calls hit"],
    "proposedChange": {
        "edgeType": "weather_wind",
        "currentValue": 1.0,
        "newValue": 0.7,
        "reasoning": "33% hit rate",
    },
    "autoApplicable": True,
    "expectedImprovement": "+3% hit rate",
}


class TestParseRecommendations:
    def test_plain_array(self):
        [rec] = parse_recommendations(json.dumps([RECOMMENDATION]))

        assert rec.type == "weight_adjustment"
        assert rec.auto_applicable is True
        assert rec.proposed_change.edge_type == "weather_wind"
        assert rec.proposed_change.new_value == 0.7

    def test_fenced_block_with_prose(self):
        text = f"Here you go:\n```json\n{json.dumps([RECOMMENDATION])}\n```\nGood luck."
        assert len(parse_recommendations(text)) == 1

    def test_missing_optional_fields_default(self):
        [rec] = parse_recommendations('[{"type": "code_change", "priority": "low", "title": "Refactor"}]')
        assert rec.auto_applicable is False
        assert rec.evidence == []
        assert rec.proposed_change.new_value is None

    def test_garbage_is_empty(self):
        assert parse_recommendations("I could not find any problems.") == []
        assert parse_recommendations("") == []
        assert parse_recommendations("[not json]") == []

    def test_invalid_recommendation_is_empty(self):
        bad = dict(RECOMMENDATION, priority="urgent")
        assert parse_recommendations(json.dumps([bad])) == []


def messages_response(text: str) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
    }


class TestAnthropicRecommendationService:
    async def test_posts_messages_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=messages_response(json.dumps([RECOMMENDATION])))

        service = AnthropicRecommendationService(
            api_key="test-key",
            model="test-model",
            base_url="https://llm.test/",
            transport=httpx.MockTransport(handler),
        )

        recommendations = await service.recommend("## Current Edge Weights")

        assert len(recommendations) == 1
        assert seen["url"] == "https://llm.test/v1/messages"
        assert seen["headers"]["x-api-key"] == "test-key"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["model"] == "test-model"
        assert "## Current Edge Weights" in seen["body"]["messages"][0]["content"]
        assert "JSON array" in seen["body"]["system"]

    async def test_no_api_key_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("request should not be sent")

        service = AnthropicRecommendationService(api_key="", transport=httpx.MockTransport(handler))
        assert await service.recommend("context") == []

    async def test_server_error_is_empty(self):
        service = AnthropicRecommendationService(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(529, json={"error": "overloaded"})),
        )
        assert await service.recommend("context") == []

    async def test_timeout_is_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        service = AnthropicRecommendationService(
            api_key="test-key", transport=httpx.MockTransport(handler)
        )
        assert await service.recommend("context") == []

    async def test_unparseable_reply_is_empty(self):
        service = AnthropicRecommendationService(
            api_key="test-key",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json=messages_response("No changes needed."))
            ),
        )
        assert await service.recommend("context") == []
