"""
Tests for the element interaction layer.

Run against the in-memory page from conftest; click, fill and select
fallbacks are driven by element flags.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from browserqa.errors import (
    ElementNotFoundError,
    ElementNotInteractableError,
    OptionNotFoundError,
    ValidationError,
)
from browserqa.runner.elements import (
    CORE_WEB_VITALS_JS,
    DOM_CLICK_JS,
    NAVIGATION_TIMING_JS,
    ElementInteractor,
    ElementOptions,
)


class TestWaitForElement:
    """Test waiting for elements."""

    async def test_returns_locator_for_present_element(self, interactor: ElementInteractor, page) -> None:
        page.add("#title", text="Hello")
        locator = await interactor.wait_for_element(page, "#title")
        assert locator.selector == "#title"

    async def test_missing_element_raises_not_found(self, interactor: ElementInteractor, page) -> None:
        """Failure message names the selector, timeout and state."""
        with pytest.raises(ElementNotFoundError, match=r"#missing \(waited 100ms for attached\)"):
            await interactor.wait_for_element(page, "#missing")

    async def test_visible_state_requested(self, interactor: ElementInteractor, page) -> None:
        page.add("#hidden", visible=False)
        with pytest.raises(ElementNotFoundError, match="for visible"):
            await interactor.wait_for_element(page, "#hidden", ElementOptions(wait_for_visible=True))

    async def test_disabled_element_not_interactable(self, interactor: ElementInteractor, page) -> None:
        page.add("#submit", enabled=False)
        with pytest.raises(ElementNotInteractableError):
            await interactor.wait_for_element(page, "#submit", ElementOptions(wait_for_enabled=True))

    async def test_explicit_zero_timeout_is_honoured(self, interactor: ElementInteractor, page) -> None:
        with pytest.raises(ElementNotFoundError, match=r"waited 0ms"):
            await interactor.wait_for_element(page, "#missing", ElementOptions(timeout=0))

    async def test_get_all_elements(self, interactor: ElementInteractor, page) -> None:
        page.add("li.item")

        locators = await interactor.get_all_elements(page, "li.item")

        assert [loc.selector for loc in locators] == ["li.item"]

    async def test_get_all_elements_missing(self, interactor: ElementInteractor, page) -> None:
        with pytest.raises(ElementNotFoundError):
            await interactor.get_all_elements(page, "li.item")

    async def test_wait_for_element_to_disappear(self, interactor: ElementInteractor, page) -> None:
        await interactor.wait_for_element_to_disappear(page, "#spinner", timeout=100)
        assert ("wait_for", "#spinner", "detached") in page.calls

    async def test_element_that_stays_raises(self, interactor: ElementInteractor, page) -> None:
        page.add("#spinner")
        with pytest.raises(Exception, match="to be detached"):
            await interactor.wait_for_element_to_disappear(page, "#spinner", timeout=100)

    async def test_wait_for_elements_gathers(self, interactor: ElementInteractor, page) -> None:
        page.add("#a")
        page.add("#b")
        locators = await interactor.wait_for_elements(page, ["#a", "#b"])
        assert [loc.selector for loc in locators] == ["#a", "#b"]


class TestSmartClick:
    """Test click fallbacks."""

    async def test_plain_click(self, interactor: ElementInteractor, page) -> None:
        page.add("#btn")
        await interactor.smart_click(page, "#btn")
        assert page.clicked == ["#btn"]
        assert ("click", "#btn", False) in page.calls
        assert ("click", "#btn", True) not in page.calls

    async def test_intercepted_click_scrolls_and_forces(self, interactor: ElementInteractor, page) -> None:
        """An intercepted click falls back to scroll + forced click."""
        page.add("#btn", blocked=True)
        await interactor.smart_click(page, "#btn")

        assert page.clicked == ["#btn"]
        assert ("scroll_into_view", "#btn") in page.calls
        assert ("click", "#btn", True) in page.calls

    async def test_dom_click_last_resort(self, interactor: ElementInteractor, page) -> None:
        """When the forced click also fails the click is dispatched in the DOM."""
        page.add("#btn", blocked=True, force_blocked=True)
        await interactor.smart_click(page, "#btn")

        assert ("evaluate", DOM_CLICK_JS, "#btn") in page.calls
        assert page.clicked == ["#btn"]

    async def test_missing_element(self, interactor: ElementInteractor, page) -> None:
        with pytest.raises(ElementNotFoundError):
            await interactor.smart_click(page, "#nope")


class TestSmartFill:
    """Test fill with read-back validation."""

    async def test_fill_replaces_value(self, interactor: ElementInteractor, page) -> None:
        field = page.add("#email", value="old@example.com")
        await interactor.smart_fill(page, "#email", "new@example.com")
        assert field.value == "new@example.com"

    async def test_mismatched_value_fails_validation(self, interactor: ElementInteractor, page) -> None:
        page.add("#code", truncates_input=True)
        with pytest.raises(ValidationError, match='Expected: "abc", Actual: "ab"'):
            await interactor.smart_fill(page, "#code", "abc")

    async def test_type_text_appends(self, interactor: ElementInteractor, page) -> None:
        field = page.add("#search", value="foo")
        await interactor.type_text(page, "#search", "bar")
        assert field.value == "foobar"


class TestSmartSelect:
    """Test option selection."""

    @pytest.fixture
    def country(self, page):
        return page.add("#country", options=[("ca", " Canada "), ("fr", "France")])

    async def test_select_by_value(self, interactor: ElementInteractor, page, country) -> None:
        await interactor.smart_select(page, "#country", "fr")
        assert country.selected == "fr"

    async def test_select_falls_back_to_label(self, interactor: ElementInteractor, page, country) -> None:
        """Labels are matched after trimming."""
        await interactor.smart_select(page, "#country", "Canada")
        assert country.selected == "ca"

    async def test_unknown_option(self, interactor: ElementInteractor, page, country) -> None:
        with pytest.raises(OptionNotFoundError, match='label "Spain" not found'):
            await interactor.smart_select(page, "#country", "Spain")
        assert country.selected is None


class TestReading:
    """Test text reads and probes."""

    async def test_text_is_trimmed(self, interactor: ElementInteractor, page) -> None:
        page.add("h1", text="  Welcome back  ")
        assert await interactor.get_element_text(page, "h1") == "Welcome back"

    async def test_text_falls_back_to_input_value(self, interactor: ElementInteractor, page) -> None:
        page.add("#name", text="", value=" Alice ")
        assert await interactor.get_element_text(page, "#name") == "Alice"

    async def test_probes_never_raise(self, interactor: ElementInteractor, page) -> None:
        page.add("#shown")
        page.add("#off", enabled=False, visible=False)

        assert await interactor.element_exists(page, "#shown") is True
        assert await interactor.element_exists(page, "#gone") is False
        assert await interactor.is_element_visible(page, "#off") is False
        assert await interactor.is_element_visible(page, "#gone") is False
        assert await interactor.is_element_enabled(page, "#shown") is True
        assert await interactor.is_element_enabled(page, "#off") is False
        assert await interactor.is_element_enabled(page, "#gone") is False

    async def test_empty_element_reads_as_empty_string(self, interactor: ElementInteractor, page) -> None:
        page.add("#blank", text="   ", value="")
        assert await interactor.get_element_text(page, "#blank") == ""

    async def test_get_attribute(self, interactor: ElementInteractor, page) -> None:
        page.add("a.docs", attributes={"href": "/docs"})

        assert await interactor.get_element_attribute(page, "a.docs", "href") == "/docs"
        assert await interactor.get_element_attribute(page, "a.docs", "target") is None

    async def test_get_attribute_of_missing_element(self, interactor: ElementInteractor, page) -> None:
        with pytest.raises(ElementNotFoundError):
            await interactor.get_element_attribute(page, "a.gone", "href")


class TestPointerAndFiles:
    """Test drag and drop and file uploads."""

    async def test_drag_and_drop(self, interactor: ElementInteractor, page) -> None:
        page.add("#card")
        page.add("#done-column")

        await interactor.drag_and_drop(page, "#card", "#done-column")

        assert ("drag_to", "#card", "#done-column") in page.calls

    async def test_drag_waits_for_target(self, interactor: ElementInteractor, page) -> None:
        """A missing drop target fails before any drag starts."""
        page.add("#card")

        with pytest.raises(ElementNotFoundError, match="#done-column"):
            await interactor.drag_and_drop(page, "#card", "#done-column")

        assert not any(call[0] == "drag_to" for call in page.calls)
        assert ("wait_for", "#card", "attached") in page.calls

    async def test_drag_waits_for_source(self, interactor: ElementInteractor, page) -> None:
        page.add("#done-column")

        with pytest.raises(ElementNotFoundError, match="#card"):
            await interactor.drag_and_drop(page, "#card", "#done-column")

        assert not any(call[0] == "drag_to" for call in page.calls)

    @pytest.mark.parametrize(
        ("files", "expected"),
        [("a.pdf", ["a.pdf"]), (["a.pdf", "b.png"], ["a.pdf", "b.png"])],
    )
    async def test_upload_file(self, interactor: ElementInteractor, page, files, expected) -> None:
        upload_input = page.add("input[type=file]")

        await interactor.upload_file(page, "input[type=file]", files)

        assert upload_input.uploaded == expected

    async def test_upload_to_missing_input(self, interactor: ElementInteractor, page) -> None:
        with pytest.raises(ElementNotFoundError):
            await interactor.upload_file(page, "#upload", "a.pdf")


class TestCapture:
    """Test screenshots and performance collection."""

    async def test_full_page_screenshot(self, interactor: ElementInteractor, page, tmp_path: Path) -> None:
        target = tmp_path / "shots" / "page.png"
        path = await interactor.take_screenshot(page, filename=str(target))

        assert path == str(target)
        assert target.exists()
        assert ("screenshot", str(target), True) in page.calls

    async def test_element_screenshot(self, interactor: ElementInteractor, page, tmp_path: Path) -> None:
        page.add("#chart")
        target = tmp_path / "chart.png"
        await interactor.take_screenshot(page, selector="#chart", filename=str(target))
        assert target.exists()

    async def test_performance_metrics(self, interactor: ElementInteractor, page) -> None:
        page.evaluate_results[NAVIGATION_TIMING_JS] = {
            "navigation": {
                "loadStart": 100.0,
                "loadEnd": 1300.0,
                "domContentLoaded": 800.0,
                "domComplete": 1250.0,
            },
            "resources": [
                {"name": "https://example.com/app.js", "startTime": 10.0, "endTime": 60.0, "transferSize": 2048},
            ],
        }
        page.evaluate_results[CORE_WEB_VITALS_JS] = {"lcp": 900.0, "cls": 0.02}

        metrics = await interactor.get_performance_metrics(page)

        assert metrics.load_time == 1200.0
        assert metrics.navigation.dom_content_loaded == 800.0
        assert metrics.resources[0].transfer_size == 2048
        assert metrics.core_web_vitals.lcp == 900.0
        assert metrics.core_web_vitals.fid is None
