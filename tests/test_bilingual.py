import unittest

from newscurator.bilingual.language import detect_language, sibling_language
from newscurator.bilingual.pipeline import BilingualPipeline, default_alt_text, original_text
from newscurator.bilingual.quality import assess_text_quality, contains_boilerplate, looks_like_url_only
from newscurator.bilingual.rewrite import ArticleRewriter, ArticleText
from newscurator.bilingual.translate import Translator, chunk_by_newlines
from newscurator.classification.classifier import Classification
from newscurator.errors import OracleResponseError
from newscurator.ingestion.article_types import FeedSource, RawItem

from curation_fakes import FakeOracle, routing_responder, to_spanish


EN_SOURCE = FeedSource("Example Lab", "https://lab.example.com/feed.xml", "company", "en")
ES_SOURCE = FeedSource("Ejemplo Tecnologia", "https://tec.example.es/rss", "news", "es")

ENGLISH_BODY = (
    "The research team trained the model on a much larger dataset than before and reported "
    "steady gains on reasoning benchmarks, while noting that the evaluation still has gaps."
)
SPANISH_BODY = (
    "El equipo de investigación entrenó el modelo con un conjunto de datos mucho más grande que antes "
    "y comunicó mejoras constantes en las pruebas de razonamiento, aunque reconoce que la evaluación tiene lagunas."
)

GOOD_REWRITE = {
    "title": "Lab releases a larger reasoning model",
    "summary": (
        "A research lab released a new language model trained on a larger dataset, reporting steady "
        "gains on reasoning benchmarks while acknowledging open questions about evaluation."
    ),
    "content": "\n\n".join(
        [
            "The lab said the model was trained on several times more text than its predecessor, "
            "with most of the new material drawn from technical and scientific writing.",
            "Researchers reported consistent improvements on multi-step reasoning tasks and on "
            "mathematics problems, although the margins varied between test suites.",
            "Independent evaluators cautioned that public benchmarks can overstate progress when "
            "training data overlaps with test questions, and asked for more transparent reporting.",
            "The team plans to publish a technical report describing the training recipe, the data "
            "filtering steps and the safety evaluations carried out before release.",
            "Early users described the model as noticeably better at following long instructions, "
            "though several pointed out that latency remains higher than with smaller systems.",
            "Pricing for developers was not disclosed, and the lab said access would expand gradually "
            "as it monitors how the model behaves in real applications.",
            "Analysts expect competing labs to respond with their own releases over the coming months.",
        ]
    ),
}


def item(title="Lab ships reasoning model", *, source=EN_SOURCE, content=ENGLISH_BODY):
    return RawItem(title=title, link="https://lab.example.com/blog/reasoning", source=source, content=content, snippet=content[:80])


class TestLanguage(unittest.TestCase):
    def test_short_bodies_use_the_feed_hint(self):
        self.assertEqual(detect_language("Hola", hint="es"), "es")
        self.assertEqual(detect_language("Hello", hint="multi"), "en")
        self.assertEqual(detect_language("", hint=None), "en")

    def test_detects_body_language(self):
        self.assertEqual(detect_language(ENGLISH_BODY, hint="es"), "en")
        self.assertEqual(detect_language(SPANISH_BODY, hint="en"), "es")

    def test_detection_is_repeatable(self):
        mixed = "Machine learning en la nube: the model runs fast y es barato para los equipos."
        first = detect_language(mixed * 3, hint="en")
        self.assertTrue(all(detect_language(mixed * 3, hint="en") == first for _ in range(5)))

    def test_sibling(self):
        self.assertEqual(sibling_language("en"), "es")
        self.assertEqual(sibling_language("es"), "en")


class TestQuality(unittest.TestCase):
    def test_good_copy_passes(self):
        ok, reasons = assess_text_quality(GOOD_REWRITE["title"], GOOD_REWRITE["summary"], GOOD_REWRITE["content"])
        self.assertTrue(ok, reasons)

    def test_url_only_and_boilerplate(self):
        self.assertTrue(looks_like_url_only("https://lab.example.com/post"))
        self.assertTrue(looks_like_url_only("Details: https://lab.example.com/post"))
        self.assertTrue(contains_boilerplate("Great story. Read more at the source."))
        self.assertTrue(contains_boilerplate("Suscríbete a nuestro boletín"))
        ok, reasons = assess_text_quality("Short", "https://lab.example.com/post", GOOD_REWRITE["content"] + " Continue reading")
        self.assertFalse(ok)
        self.assertIn("title_too_short", reasons)
        self.assertIn("summary_url_only", reasons)
        self.assertIn("boilerplate_artifacts", reasons)


class TestTranslator(unittest.TestCase):
    def test_chunks_rejoin_to_the_input(self):
        text = "\n\n".join(f"Paragraph {i}: " + "word " * 40 for i in range(20))
        chunks = chunk_by_newlines(text, 500)
        self.assertGreater(len(chunks), 1)
        self.assertEqual("".join(chunks), text)
        self.assertTrue(all(len(c) <= 500 for c in chunks))

    def test_article_translation(self):
        oracle = FakeOracle(routing_responder(translate=to_spanish))
        article = ArticleText(title="Title", summary="Summary", content="Body")
        out = Translator(oracle).translate_article(article, source="en", target="es")
        self.assertEqual(out, ArticleText(title="[es] Title", summary="[es] Summary", content="[es] Body"))
        self.assertIn("from English to Spanish", oracle.calls[0]["prompt"])

    def test_count_mismatch_raises(self):
        oracle = FakeOracle(routing_responder(translate=lambda texts: texts[:1]))
        with self.assertRaises(OracleResponseError):
            Translator(oracle).translate_batch(["a", "b"], source="en", target="es")

    def test_same_language_is_a_no_op(self):
        oracle = FakeOracle(routing_responder())
        self.assertEqual(Translator(oracle).translate_batch(["a"], source="es", target="es"), ["a"])
        self.assertEqual(oracle.calls, [])


class TestRewriter(unittest.TestCase):
    def test_good_rewrite(self):
        oracle = FakeOracle(routing_responder(rewrite=lambda prompt: GOOD_REWRITE))
        out = ArticleRewriter(oracle).rewrite(original_text(item()), language="en")
        self.assertEqual(out.title, GOOD_REWRITE["title"])
        self.assertIn("Do NOT include raw URLs", oracle.calls[0]["prompt"])

    def test_low_quality_rewrite_is_rejected(self):
        spammy = dict(GOOD_REWRITE, content=GOOD_REWRITE["content"] + "\n\nSubscribe to our newsletter.")
        oracle = FakeOracle(routing_responder(rewrite=lambda prompt: spammy))
        self.assertIsNone(ArticleRewriter(oracle).rewrite(original_text(item()), language="en"))

    def test_contract_violation_is_rejected(self):
        oracle = FakeOracle(routing_responder(rewrite=lambda prompt: {"title": "x"}))
        self.assertIsNone(ArticleRewriter(oracle).rewrite(original_text(item()), language="en"))


class TestBilingualPipeline(unittest.TestCase):
    def pipeline(self, responder):
        oracle = FakeOracle(responder)
        return BilingualPipeline(ArticleRewriter(oracle), Translator(oracle))

    def test_rewrite_then_translate(self):
        copy = self.pipeline(routing_responder(rewrite=lambda p: GOOD_REWRITE, translate=to_spanish)).build(item())

        self.assertEqual(copy.language, "en")
        self.assertTrue(copy.rewritten)
        self.assertTrue(copy.translated)
        self.assertEqual(copy.title_en, GOOD_REWRITE["title"])
        self.assertEqual(copy.title_es, "[es] " + GOOD_REWRITE["title"])
        self.assertEqual(copy.image_alt_text_en, default_alt_text(GOOD_REWRITE["title"], "en"))
        self.assertEqual(copy.image_alt_text_es, "[es] " + copy.image_alt_text_en)

    def test_rewrite_failure_keeps_original(self):
        copy = self.pipeline(routing_responder(translate=to_spanish)).build(item())
        self.assertFalse(copy.rewritten)
        self.assertEqual(copy.title_en, "Lab ships reasoning model")
        self.assertEqual(copy.content_en, ENGLISH_BODY)

    def test_translation_failure_mirrors_source(self):
        copy = self.pipeline(routing_responder()).build(item())
        self.assertFalse(copy.translated)
        self.assertEqual(copy.title_en, copy.title_es)
        self.assertEqual(copy.summary_en, copy.summary_es)
        self.assertEqual(copy.content_en, copy.content_es)
        self.assertTrue(copy.image_alt_text_en)
        self.assertEqual(copy.image_alt_text_en, copy.image_alt_text_es)

    def test_spanish_source_translates_to_english(self):
        to_english = lambda texts: [f"[en] {t}" for t in texts]
        es_item = item("El laboratorio presenta un modelo", source=ES_SOURCE, content="Texto breve.")
        copy = self.pipeline(routing_responder(translate=to_english)).build(es_item)

        self.assertEqual(copy.language, "es")
        self.assertEqual(copy.title_es, "El laboratorio presenta un modelo")
        self.assertEqual(copy.title_en, "[en] El laboratorio presenta un modelo")

    def test_classifier_alt_text_is_used(self):
        c = Classification(relevant=True, quality_score=0.8, category="research", summary="", image_alt_text="Server racks")
        copy = self.pipeline(routing_responder(translate=to_spanish)).build(item(), c)
        self.assertEqual(copy.image_alt_text_en, "Server racks")
        self.assertEqual(copy.image_alt_text_es, "[es] Server racks")

    def test_scraped_content_wins_over_feed_body(self):
        copy = self.pipeline(routing_responder()).build(item(), scraped_content="  Full scraped article text.  ")
        self.assertEqual(copy.content_en, "Full scraped article text.")


if __name__ == "__main__":
    unittest.main()
