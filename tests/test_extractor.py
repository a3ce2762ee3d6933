from support_rag_server.ingestion.extractor import FAQExtractor

from conftest import SUPPORT_PAGE


def test_extracts_faqs_from_recognized_sections():
    faqs = FAQExtractor().extract(SUPPORT_PAGE)

    assert [f.category for f in faqs] == [
        "Trending Articles",
        "Payments",
        "Payments",
        "Offer, Rates, & Fees",
        "Account",
    ]
    assert [f.id for f in faqs] == [f"aven_faq_{i}" for i in range(1, 6)]


def test_chunk_text_combines_question_and_cleaned_answer():
    faqs = FAQExtractor().extract(SUPPORT_PAGE)
    first = faqs[0]

    assert first.question == "What is the Aven card?"
    assert first.chunk_text == (
        "Question: What is the Aven card?\n\n"
        "Answer: The Aven card is a credit card backed by home equity."
    )


def test_boilerplate_is_stripped():
    faqs = FAQExtractor().extract(SUPPORT_PAGE)
    for faq in faqs:
        assert "SHOW MORE" not in faq.chunk_text
        assert "![" not in faq.chunk_text


def test_unknown_heading_is_skipped():
    faqs = FAQExtractor().extract(SUPPORT_PAGE)
    assert all("hiring" not in f.question for f in faqs)


def test_missing_intro_marker_yields_nothing():
    assert FAQExtractor().extract("##### Payments\n- How do I pay?\nUse the app.") == []


def test_no_recognized_headings_yields_nothing():
    text = "## How can we help?\n##### Careers\n- Are you hiring?\nSometimes, check back.\n"
    assert FAQExtractor().extract(text) == []


def test_empty_and_garbage_input_never_raises():
    extractor = FAQExtractor()
    assert extractor.extract("") == []
    assert extractor.extract("## How can we help?") == []
    assert extractor.extract("## How can we help?\n##### Payments\n???\n- ?\n") == []


def test_stray_question_mark_stays_with_answer():
    # First "?" ends the question; the duplicated "?" from the page's
    # expander icon is left at the start of the answer.
    text = "## How can we help?\n##### Payments\n- How do I pay? ?\nUse the app."
    faqs = FAQExtractor().extract(text)

    assert len(faqs) == 1
    faq = faqs[0]
    assert faq.category == "Payments"
    assert faq.question == "How do I pay?"
    assert "Use the app." in faq.chunk_text
    assert faq.chunk_text == "Question: How do I pay?\n\nAnswer: ? Use the app."


def test_answer_on_same_line_as_question():
    text = "## How can we help?\n##### Account\n- Can I change my email? Yes, from the settings page.\n"
    faqs = FAQExtractor().extract(text)

    assert len(faqs) == 1
    assert faqs[0].question == "Can I change my email?"
    assert faqs[0].chunk_text.endswith("Answer: Yes, from the settings page.")


def test_short_pairs_are_dropped():
    text = "## How can we help?\n##### Payments\n- Pay?\nUse the app to pay.\n- How do I pay?\nApp.\n"
    assert FAQExtractor().extract(text) == []


def test_repeated_heading_accumulates():
    text = (
        "## How can we help?\n"
        "##### Payments\n- How do I make a payment?\nUse the app.\n"
        "##### Account\n- How do I log in?\nUse your email.\n"
        "##### Payments\n- Can I pay by phone?\nYes, call us anytime.\n"
    )
    faqs = FAQExtractor().extract(text)

    assert [f.category for f in faqs] == ["Payments", "Account", "Payments"]
    assert faqs[2].id == "aven_faq_3"


def test_recognized_heading_without_pairs_contributes_nothing():
    text = (
        "## How can we help?\n"
        "##### Payments\nNothing to see here.\n"
        "##### Account\n- How do I log in?\nUse your email.\n"
    )
    faqs = FAQExtractor().extract(text)
    assert [f.category for f in faqs] == ["Account"]


def test_extraction_is_deterministic():
    extractor = FAQExtractor()
    assert extractor.extract(SUPPORT_PAGE) == extractor.extract(SUPPORT_PAGE)


def test_custom_id_prefix():
    faqs = FAQExtractor(id_prefix="acme_faq").extract(SUPPORT_PAGE)
    assert faqs[0].id == "acme_faq_1"
