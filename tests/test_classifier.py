import unittest
from types import SimpleNamespace

import openai

from newscurator.classification.classifier import Classification, RelevanceClassifier, is_accepted
from newscurator.classification.contracts import validate_payload
from newscurator.errors import OracleError, OracleResponseError
from newscurator.ingestion.article_types import FeedSource, RawItem
from newscurator.llm.client import JSONOracle, OracleProvider

from curation_fakes import FakeOracle


SOURCE = FeedSource("Example Lab", "https://lab.example.com/feed.xml", "company", "en")

SCRIPTED = {
    "New open-weights model tops benchmarks": {"relevant": True, "quality_score": 0.9, "category": "machinelearning", "summary": "x"},
    "Ten AI tools you must try": {"relevant": True, "quality_score": 0.3, "category": "tools", "summary": "x"},
    "Local bakery opens second shop": {"relevant": False, "quality_score": 0.8, "category": "other", "summary": "x"},
    "Robot arm learns from video": {"relevant": True, "quality_score": 0.6, "category": "robotics", "summary": "x"},
    "Malformed reply": {"relevant": "yes", "quality_score": 2, "category": "gossip"},
}


def scripted(system, prompt):
    title = prompt.split("\n", 1)[0][len("Title: "):]
    if title == "Provider outage":
        raise OracleError("all oracle providers failed")
    return SCRIPTED[title]


def item(title):
    slug = title.lower().replace(" ", "-")
    return RawItem(title=title, link=f"https://lab.example.com/{slug}", source=SOURCE, content="Body text.")


class TestRelevanceClassifier(unittest.TestCase):
    def test_filtered_set_is_relevant_and_above_threshold(self):
        items = [item(t) for t in list(SCRIPTED) + ["Provider outage"]]
        accepted = RelevanceClassifier(FakeOracle(scripted), max_workers=3).classify(items)

        self.assertEqual(
            [it.title for it, _ in accepted],
            ["New open-weights model tops benchmarks", "Robot arm learns from video"],
        )
        for _, c in accepted:
            self.assertTrue(c.relevant)
            self.assertGreaterEqual(c.quality_score, 0.6)

    def test_contract_violation_is_dropped(self):
        classifier = RelevanceClassifier(FakeOracle(scripted))
        self.assertIsNone(classifier.classify_one(item("Malformed reply")))
        self.assertIsNone(classifier.classify_one(item("Provider outage")))

    def test_prompt_carries_title_and_body(self):
        oracle = FakeOracle(scripted)
        RelevanceClassifier(oracle).classify_one(item("Robot arm learns from video"))
        self.assertIn("Title: Robot arm learns from video", oracle.calls[0]["prompt"])
        self.assertIn("Body text.", oracle.calls[0]["prompt"])

    def test_is_accepted(self):
        self.assertFalse(is_accepted(None))
        self.assertFalse(is_accepted(Classification(relevant=True, quality_score=0.59, category="news", summary="")))
        self.assertTrue(is_accepted(Classification(relevant=True, quality_score=0.6, category="news", summary="")))

    def test_schema(self):
        self.assertEqual(validate_payload("classification", SCRIPTED["Robot arm learns from video"]), [])
        self.assertTrue(validate_payload("classification", SCRIPTED["Malformed reply"]))


class FakeCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.reply))])


def provider(name, completions, *, json_mode=True):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OracleProvider(name=name, client=client, model=f"{name}-model", json_mode=json_mode)


class TestJSONOracle(unittest.TestCase):
    def test_falls_back_to_next_provider(self):
        primary = FakeCompletions(error=openai.OpenAIError("invalid api key"))
        backup = FakeCompletions(reply='```json\n{"relevant": true}\n```')
        oracle = JSONOracle([provider("openai", primary), provider("openrouter", backup, json_mode=False)])

        self.assertEqual(oracle.complete_json(system="s", prompt="p"), {"relevant": True})
        self.assertEqual(len(primary.calls), 1)
        self.assertEqual(primary.calls[0]["response_format"], {"type": "json_object"})
        self.assertNotIn("response_format", backup.calls[0])

    def test_non_json_reply_is_terminal(self):
        primary = FakeCompletions(reply="I cannot help with that.")
        backup = FakeCompletions(reply='{"relevant": true}')
        oracle = JSONOracle([provider("openai", primary), provider("openrouter", backup)])

        with self.assertRaises(OracleResponseError):
            oracle.complete_json(system="s", prompt="p")
        self.assertEqual(backup.calls, [])

    def test_all_providers_failing(self):
        oracle = JSONOracle([provider("openai", FakeCompletions(error=openai.OpenAIError("down")))])
        with self.assertRaises(OracleError):
            oracle.complete_json(system="s", prompt="p")

    def test_requires_a_provider(self):
        with self.assertRaises(OracleError):
            JSONOracle([])


if __name__ == "__main__":
    unittest.main()
