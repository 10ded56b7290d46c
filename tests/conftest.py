"""
Pytest configuration and fixtures for narrastruct tests.
"""

import pytest

BOOK_MARKDOWN = """# Chapter 1: The Beginning

The lighthouse keeper climbed the stairs every evening at six. He counted each step aloud, although he had known the number for twenty years.

His daughter waited below with a lantern and a basket of bread. She never climbed with him, because the wind at the top frightened her.

# Chapter 2: The Journey

In the spring they left the island on the supply boat. The crossing took most of a day, and the sea was grey and restless the whole way.

On the mainland a cousin met them at the harbour. He drove them inland along narrow roads until the smell of salt was gone.
"""

THIRD_CHAPTER = """
# Chapter 3: The Return

Years later the daughter came back alone to the island. The lighthouse was dark, but the stairs were exactly as her father had counted them.
"""

UNHEADED_MARKDOWN = """The rain had not stopped for three days, and the village square was a shallow lake.

Most people stayed indoors and listened to the water drumming on the roofs.

Only the baker went out, carrying bread wrapped in oilcloth to the houses on the hill.
"""

LOW_SIGNAL_MARKDOWN = """# ?

The first part of the notes has no proper title, only a question mark that someone typed in a hurry and never replaced with anything better.

# Chapter 1: The Beginning

The second part is clearly titled and carries enough words to look like a real chapter of a real document about something.
"""

FRONT_MATTER_MARKDOWN = """---
title: The Keeper's Daughter
author: A. N. Writer
language: fr
series: Coastal Tales
---
""" + BOOK_MARKDOWN


@pytest.fixture(scope="session")
def book_markdown() -> str:
    """Two clearly headed chapters of two paragraphs each."""
    return BOOK_MARKDOWN


@pytest.fixture(scope="session")
def three_chapter_markdown() -> str:
    """The book with a third chapter appended."""
    return BOOK_MARKDOWN + THIRD_CHAPTER


@pytest.fixture(scope="session")
def unheaded_markdown() -> str:
    """Three paragraphs with no chapter markers at all."""
    return UNHEADED_MARKDOWN


@pytest.fixture(scope="session")
def low_signal_markdown() -> str:
    """A chapter titled "?" followed by a clearly titled one."""
    return LOW_SIGNAL_MARKDOWN


@pytest.fixture(scope="session")
def front_matter_markdown() -> str:
    """The book behind a YAML front matter block."""
    return FRONT_MATTER_MARKDOWN


@pytest.fixture
def analyzer():
    """A fresh analyzer with in-memory correction storage."""
    from narrastruct import StructureAnalyzer

    return StructureAnalyzer()


@pytest.fixture
def book_result(analyzer, book_markdown):
    """Analysis result for the two-chapter book."""
    return analyzer.analyze(book_markdown, "markdown")


@pytest.fixture
def book_structure(book_result):
    """Scored DocumentStructure for the two-chapter book."""
    return book_result.document_structure


@pytest.fixture
def profile_store(tmp_path):
    """A correction profile store writing YAML under a temporary directory."""
    from narrastruct import CorrectionProfileStore

    return CorrectionProfileStore(tmp_path / "profiles")
