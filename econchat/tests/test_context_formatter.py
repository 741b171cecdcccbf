from __future__ import annotations

import unittest

from econchat.services.context_formatter import to_context

from .utils import make_series


class ContextFormatterTests(unittest.TestCase):
    def test_context_mirrors_series(self) -> None:
        series = make_series("UNRATE", "Unemployment Rate", values=(3.7, None, 3.9))

        context = to_context(series)

        self.assertEqual(context.type, "economic_data")
        self.assertEqual(context.content.seriesId, "UNRATE")
        self.assertEqual(context.metadata.seriesId, "UNRATE")
        self.assertEqual(context.content.title, "Unemployment Rate")
        self.assertEqual(context.content.observations, series.observations)
        self.assertEqual(context.metadata.source, "FRED")
        self.assertEqual(context.metadata.frequency, "M")
        self.assertEqual(context.metadata.units, "Percent")
        self.assertEqual(context.metadata.lastUpdated, series.lastUpdated)
        self.assertTrue(context.contextId.startswith("fred-UNRATE-"))

    def test_context_ids_are_unique_per_call(self) -> None:
        series = make_series("GDP")
        ids = {to_context(series).contextId for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_missing_values_are_preserved(self) -> None:
        context = to_context(make_series("DGS10", values=(None,)))
        self.assertIsNone(context.content.observations[0].value)

    def test_rejects_non_series_input(self) -> None:
        with self.assertRaises(TypeError):
            to_context({"id": "GDP"})


if __name__ == "__main__":
    unittest.main()
