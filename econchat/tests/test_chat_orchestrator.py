from __future__ import annotations

import json
import unittest
from unittest.mock import patch

from econchat.config import Settings
from econchat.exceptions import ExternalServiceError
from econchat.models import ChatMessage, FunctionCallItem, FunctionCallOutputItem, MessageItem
from econchat.services.cache import CacheService
from econchat.services.chat_orchestrator import (
    DEFAULT_SYSTEM_PROMPT,
    FALLBACK_MESSAGE,
    ChatOrchestrator,
    ChatTurn,
    generate_short_id,
)
from econchat.services.context_cache import EconomicContextCache
from econchat.services.context_service import EconomicContextService
from econchat.services.redis_cache import RedisCacheService
from econchat.services.tools import TOOL_CATALOGUE

from .utils import (
    FakeClock,
    ScriptedLLM,
    StubProvider,
    assistant_message,
    function_call,
    make_series,
    model_response,
    run,
    web_search_call,
)


def _outputs(call_input):
    return [item for item in call_input if isinstance(item, FunctionCallOutputItem)]


class ChatOrchestratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.provider = StubProvider(
            [
                make_series("UNRATE", "Unemployment Rate", values=(3.7, 3.8, 3.9, 4.0)),
                make_series("GDP", "Gross Domestic Product"),
            ]
        )
        store = RedisCacheService(fallback=CacheService(clock=self.clock))
        cache = EconomicContextCache(store, self.provider, clock=self.clock)
        self.context_service = EconomicContextService(cache, self.provider)
        self.settings = Settings()

    def _orchestrator(self, llm: ScriptedLLM, settings: Settings | None = None) -> ChatOrchestrator:
        return ChatOrchestrator(llm, self.context_service, settings or self.settings)

    def test_direct_answer_uses_single_model_call(self) -> None:
        llm = ScriptedLLM([model_response(assistant_message("Rates are steady."))])

        result = run(self._orchestrator(llm).process_chat("How are rates?"))

        self.assertEqual(result.response, "Rates are steady.")
        self.assertEqual(len(llm.calls), 1)
        self.assertEqual(llm.calls[0]["tools"], TOOL_CATALOGUE)

    def test_web_search_answer_comes_from_following_message(self) -> None:
        llm = ScriptedLLM([
            model_response(web_search_call(), assistant_message("Markets rallied today."))
        ])

        result = run(self._orchestrator(llm).process_chat("What happened in markets today?"))

        self.assertEqual(result.response, "Markets rallied today.")
        self.assertEqual(len(llm.calls), 1)

    def test_web_search_without_message_falls_back(self) -> None:
        llm = ScriptedLLM([model_response(web_search_call())])

        result = run(self._orchestrator(llm).process_chat("Search something"))

        self.assertEqual(result.response, FALLBACK_MESSAGE)

    def test_empty_output_falls_back(self) -> None:
        llm = ScriptedLLM([model_response()])
        result = run(self._orchestrator(llm).process_chat("Hello"))
        self.assertEqual(result.response, FALLBACK_MESSAGE)

    def test_system_prompt_is_prepended(self) -> None:
        llm = ScriptedLLM([model_response(assistant_message("Hi"))])
        history = [
            ChatMessage(role="user", content="Earlier question"),
            ChatMessage(role="assistant", content="Earlier answer"),
        ]

        run(self._orchestrator(llm).process_chat("Hello", history))

        sent = llm.calls[0]["input"]
        self.assertEqual([item.role for item in sent], ["system", "user", "assistant", "user"])
        self.assertEqual(sent[0].content, DEFAULT_SYSTEM_PROMPT)
        self.assertEqual(sent[-1].content, "Hello")

    def test_existing_system_message_is_kept(self) -> None:
        llm = ScriptedLLM([model_response(assistant_message("Hi"))])
        history = [ChatMessage(role="system", content="Custom persona")]

        run(self._orchestrator(llm).process_chat("Hello", history))

        sent = llm.calls[0]["input"]
        self.assertEqual([item.role for item in sent], ["system", "user"])
        self.assertEqual(sent[0].content, "Custom persona")

    def test_configured_system_prompt_overrides_default(self) -> None:
        llm = ScriptedLLM([model_response(assistant_message("Hi"))])
        settings = Settings(assistant_system_prompt="Be brief.")

        run(self._orchestrator(llm, settings).process_chat("Hello"))

        self.assertEqual(llm.calls[0]["input"][0].content, "Be brief.")

    def test_tool_call_round_trip(self) -> None:
        # Warm the cache so the tool call is served without another fetch
        run(self.context_service.get_context_for_series("UNRATE"))
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": ["UNRATE"]}))),
            model_response(assistant_message("Unemployment is 3.7%.")),
        ])

        result = run(self._orchestrator(llm).process_chat("What's the unemployment rate?"))

        self.assertEqual(result.response, "Unemployment is 3.7%.")
        self.assertEqual(self.provider.fetch_counts["UNRATE"], 1)
        self.assertEqual(len(llm.calls), 2)
        self.assertIsNone(llm.calls[1]["tools"])

        second_input = llm.calls[1]["input"]
        calls = [item for item in second_input if isinstance(item, FunctionCallItem)]
        outputs = _outputs(second_input)
        self.assertEqual([c.call_id for c in calls], ["call_1"])
        self.assertEqual([o.call_id for o in outputs], ["call_1"])
        # The call is echoed back ahead of its output
        self.assertLess(second_input.index(calls[0]), second_input.index(outputs[0]))

        payload = json.loads(outputs[0].output)
        self.assertIn("timestamp", payload)
        self.assertEqual(len(payload["data"]), 1)
        entry = payload["data"][0]
        self.assertEqual(entry["seriesId"], "UNRATE")
        self.assertEqual(entry["title"], "Unemployment Rate")
        self.assertEqual(entry["frequency"], "M")
        self.assertEqual(entry["observations"][0], {"date": "2023-01-01", "value": 3.7})

    def test_repeated_prompt_is_served_from_cache(self) -> None:
        arguments = json.dumps({"seriesIds": ["UNRATE"]})
        llm = ScriptedLLM([
            model_response(function_call("call_1", arguments)),
            model_response(assistant_message("Unemployment is 3.7%.")),
            model_response(function_call("call_2", arguments)),
            model_response(assistant_message("Still 3.7%.")),
        ])
        orchestrator = self._orchestrator(llm)

        first = run(orchestrator.process_chat("what is the unemployment rate"))
        self.assertEqual(self.provider.fetch_counts["UNRATE"], 1)
        second = run(orchestrator.process_chat("what is the unemployment rate"))

        self.assertEqual(first.response, "Unemployment is 3.7%.")
        self.assertEqual(second.response, "Still 3.7%.")
        self.assertEqual(self.provider.fetch_counts["UNRATE"], 1)

        for call in (llm.calls[1], llm.calls[3]):
            payload = json.loads(_outputs(call["input"])[0].output)
            observations = payload["data"][0]["observations"]
            self.assertEqual([obs["value"] for obs in observations], [3.7, 3.8, 3.9, 4.0])

    def test_limit_truncates_tool_observations(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": ["UNRATE"], "limit": 2}))),
            model_response(assistant_message("Done")),
        ])

        run(self._orchestrator(llm).process_chat("Latest unemployment"))

        payload = json.loads(_outputs(llm.calls[1]["input"])[0].output)
        self.assertEqual(len(payload["data"][0]["observations"]), 2)

    def test_valid_and_malformed_calls_each_get_an_output(self) -> None:
        llm = ScriptedLLM([
            model_response(
                function_call("call_a", json.dumps({"seriesIds": ["GDP"]})),
                function_call("call_b", "{not json"),
            ),
            model_response(assistant_message("Here is GDP.")),
        ])

        result = run(self._orchestrator(llm).process_chat("GDP please"))

        self.assertEqual(result.response, "Here is GDP.")
        outputs = _outputs(llm.calls[1]["input"])
        self.assertEqual([o.call_id for o in outputs], ["call_a", "call_b"])
        self.assertEqual(json.loads(outputs[0].output)["data"][0]["seriesId"], "GDP")
        error = json.loads(outputs[1].output)["error"]
        self.assertTrue(error.startswith("Error processing function:"))

    def test_missing_series_ids_is_an_error_payload(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": []}))),
            model_response(assistant_message("Sorry")),
        ])

        run(self._orchestrator(llm).process_chat("Data?"))

        payload = json.loads(_outputs(llm.calls[1]["input"])[0].output)
        self.assertIn("error", payload)
        self.assertEqual(self.provider.batches, [])

    def test_out_of_range_arguments_are_an_error_payload(self) -> None:
        arguments = json.dumps({"seriesIds": ["UNRATE"], "limit": -1, "startDate": "2024-13-45"})
        llm = ScriptedLLM([
            model_response(function_call("call_1", arguments)),
            model_response(assistant_message("Sorry")),
        ])

        run(self._orchestrator(llm).process_chat("Unemployment?"))

        payload = json.loads(_outputs(llm.calls[1]["input"])[0].output)
        self.assertNotIn("data", payload)
        self.assertTrue(payload["error"].startswith("Error processing function:"))
        self.assertEqual(self.provider.batches, [])

    def test_unknown_tool_gets_error_payload(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", "{}", name="get_weather")),
            model_response(assistant_message("I can't check the weather.")),
        ])

        result = run(self._orchestrator(llm).process_chat("Weather?"))

        self.assertEqual(result.response, "I can't check the weather.")
        outputs = _outputs(llm.calls[1]["input"])
        self.assertEqual(json.loads(outputs[0].output), {"error": "Unknown tool: get_weather"})

    def test_second_round_tool_request_is_not_executed(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": ["GDP"]}))),
            model_response(function_call("call_2", json.dumps({"seriesIds": ["UNRATE"]}))),
        ])

        result = run(self._orchestrator(llm).process_chat("GDP then unemployment"))

        self.assertEqual(result.response, FALLBACK_MESSAGE)
        self.assertEqual(len(llm.calls), 2)
        self.assertEqual(self.provider.fetch_counts["UNRATE"], 0)

    def test_model_failure_returns_fallback(self) -> None:
        llm = ScriptedLLM([ExternalServiceError("Responses API returned 500", service="openai")])

        result = run(self._orchestrator(llm).process_chat("Hello"))

        self.assertEqual(result.response, FALLBACK_MESSAGE)

    def test_second_call_failure_returns_fallback(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": ["GDP"]}))),
            RuntimeError("connection reset"),
        ])

        result = run(self._orchestrator(llm).process_chat("GDP"))

        self.assertEqual(result.response, FALLBACK_MESSAGE)

    def test_output_build_failure_uses_error_output(self) -> None:
        llm = ScriptedLLM([
            model_response(function_call("call_1", json.dumps({"seriesIds": ["GDP"]}))),
            model_response(assistant_message("Recovered")),
        ])

        with patch.object(ChatTurn, "_serialize_payload", side_effect=TypeError("not serializable")):
            result = run(self._orchestrator(llm).process_chat("GDP"))

        self.assertEqual(result.response, "Recovered")
        output = _outputs(llm.calls[1]["input"])[0]
        self.assertEqual(output.call_id, "call_1")
        self.assertTrue(output.id.startswith("err_"))
        self.assertEqual(json.loads(output.output), {"error": "Error processing function output"})

    def test_turns_do_not_share_conversation(self) -> None:
        llm = ScriptedLLM([
            model_response(assistant_message("First")),
            model_response(assistant_message("Second")),
        ])
        orchestrator = self._orchestrator(llm)

        run(orchestrator.process_chat("One"))
        run(orchestrator.process_chat("Two"))

        second = llm.calls[1]["input"]
        self.assertEqual(len(second), 2)
        self.assertIsInstance(second[1], MessageItem)
        self.assertEqual(second[1].content, "Two")


class ShortIdTests(unittest.TestCase):
    def test_format(self) -> None:
        short_id = generate_short_id("err")
        prefix, timestamp, suffix = short_id.split("_")
        self.assertEqual(prefix, "err")
        self.assertTrue(timestamp.isalnum())
        self.assertEqual(len(suffix), 3)

    def test_long_prefix_is_capped(self) -> None:
        self.assertLessEqual(len(generate_short_id("x" * 100)), 64)


if __name__ == "__main__":
    unittest.main()
