"""Tests for source-code usage context."""

import pytest

from i18n_app_translator.context import ContextExtractor, extract_keys_from_source

APP_JSX = """import React from 'react';
export function App() {
  return <h1>{t('home.title')}</h1>;
}
const label = t("home.save");
"""


@pytest.fixture
def src(tmp_path):
    root = tmp_path / "src"
    (root / "components").mkdir(parents=True)
    (root / "components" / "App.jsx").write_text(APP_JSX, encoding="utf-8")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("t('vendored.key')\n", encoding="utf-8")
    (root / "README.md").write_text("mentions home.title\n", encoding="utf-8")
    return root


class TestExtractKeys:
    def test_finds_t_calls_with_location(self, src):
        entries = extract_keys_from_source(src)

        assert [(e.key, e.source_file, e.source_line) for e in entries] == [
            ("home.title", "components/App.jsx", 3),
            ("home.save", "components/App.jsx", 5),
        ]
        assert all(e.value == "" for e in entries)


class TestContextExtractor:
    def test_surrounding_lines(self, src):
        extractor = ContextExtractor(src, context_lines=1)

        contexts = extractor.extract_context_for_keys(["home.title", "missing.key"])

        usage = contexts["home.title"].usages[0]
        assert usage.file == "components/App.jsx"
        assert usage.line_number == 3
        assert usage.snippet.splitlines() == [
            "export function App() {",
            "  return <h1>{t('home.title')}</h1>;",
            "}",
        ]
        assert contexts["missing.key"].usages == []
        assert contexts["missing.key"].describe() is None

    def test_format_context(self, src):
        extractor = ContextExtractor(src)
        contexts = extractor.extract_context_for_keys(["home.save", "missing.key"])

        text = extractor.format_context(contexts)

        assert 'Key "home.save" is used in:' in text
        assert "- components/App.jsx:5" in text
        assert 'Key "missing.key" - no usage context found' in text
