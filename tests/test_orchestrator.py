from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from conftest import FakeRenderer, ScriptedExtractor  # noqa: E402

from creative_backend.core.config import ServiceConfig  # noqa: E402
from creative_backend.core.errors import OCRUnavailableError, StorageError  # noqa: E402
from creative_backend.domain.projects import COMPLETED, FAILED, PROCESSING  # noqa: E402
from creative_backend.infrastructure import InMemoryObjectStorage  # noqa: E402
from creative_backend.workers.orchestrator import RenderOrchestrator  # noqa: E402

TITLE = "CORSAIR ONE I600"
SUBTITLE = "Silent power"
GARBLED = "zzzz qqqq"


def _orchestrator(repository, storage, renderer, extractor, config):
    return RenderOrchestrator(repository, storage, renderer, extractor, config)


def test_perfect_first_attempt_is_accepted_without_retry(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    renderer = FakeRenderer()
    extractor = ScriptedExtractor([f"{TITLE}\n{SUBTITLE}"])

    outcome = asyncio.run(_orchestrator(repository, storage, renderer, extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert outcome.status == COMPLETED
    assert outcome.verified is True
    assert stored.status == COMPLETED
    assert stored.retry_count == 0
    assert stored.text_accuracy_score == 100.0
    assert stored.needs_review is False
    assert stored.error_message is None
    assert stored.edited_url == f"memory://edited-images/{item.project_id}/{item.id}_edited_v1.jpg"
    assert [entry["attempt"] for entry in stored.retry_history] == [1]
    assert stored.processing_time_ms is not None and stored.processing_time_ms >= 0
    assert len(renderer.calls) == 1


def test_low_accuracy_is_retried_until_clean(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    renderer = FakeRenderer()
    extractor = ScriptedExtractor([GARBLED, GARBLED, f"{TITLE} {SUBTITLE}"])

    asyncio.run(_orchestrator(repository, storage, renderer, extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == COMPLETED
    assert stored.retry_count == 2
    assert stored.needs_review is False
    assert len(stored.retry_history) == 3
    assert stored.retry_history[0]["accuracy"] < 70
    assert stored.retry_history[-1]["accuracy"] == 100.0
    assert stored.edited_url.endswith(f"{item.id}_edited_v3.jpg")

    # every attempt gets its own object, earlier versions stay in place
    keys = sorted(key for bucket, key in storage.objects if bucket == "edited-images")
    assert [key.rsplit("_", 1)[-1] for key in keys] == ["v1.jpg", "v2.jpg", "v3.jpg"]

    second_instruction = renderer.calls[1][0]
    assert "RETRY 2/3" in second_instruction
    assert f'"{TITLE}"' in second_instruction


def test_mid_accuracy_is_accepted_and_flagged(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    extractor = ScriptedExtractor([f"{TITLE} Slnt pwr"])

    asyncio.run(_orchestrator(repository, storage, FakeRenderer(), extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == COMPLETED
    assert stored.retry_count == 0
    assert stored.text_accuracy_score == pytest.approx(83.33, abs=0.01)
    assert stored.needs_review is True


def test_exhausted_low_accuracy_keeps_last_attempt_for_review(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    extractor = ScriptedExtractor([GARBLED, GARBLED, GARBLED])

    asyncio.run(_orchestrator(repository, storage, FakeRenderer(), extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == COMPLETED
    assert stored.retry_count == 2
    assert stored.needs_review is True
    assert stored.ocr_extracted_text == GARBLED
    assert len(stored.retry_history) == 3


def test_render_failure_on_every_attempt_marks_item_failed(repository, storage, config, make_item):
    item = make_item()
    renderer = FakeRenderer(failing_sources={item.original_url})
    extractor = ScriptedExtractor()

    outcome = asyncio.run(_orchestrator(repository, storage, renderer, extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert outcome.status == FAILED
    assert stored.status == FAILED
    assert stored.retry_count == 2
    assert stored.error_message == "No image returned from AI gateway"
    assert stored.retry_history == []
    assert len(renderer.calls) == 3
    assert extractor.calls == []
    assert storage.objects == {}


def test_render_failure_consumes_an_attempt(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    renderer = FakeRenderer(fail_attempts={1})
    extractor = ScriptedExtractor([f"{TITLE} {SUBTITLE}"])

    asyncio.run(_orchestrator(repository, storage, renderer, extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == COMPLETED
    assert stored.retry_count == 1
    assert [entry["attempt"] for entry in stored.retry_history] == [2]
    assert stored.edited_url.endswith("_edited_v2.jpg")


def test_ocr_outage_accepts_image_unverified(repository, storage, config, make_item):
    item = make_item()
    extractor = ScriptedExtractor([OCRUnavailableError("OCR request failed")])

    outcome = asyncio.run(_orchestrator(repository, storage, FakeRenderer(), extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert outcome.verified is False
    assert stored.status == COMPLETED
    assert stored.retry_count == 0
    assert stored.text_accuracy_score is None
    assert stored.ocr_extracted_text is None
    assert stored.needs_review is False
    assert stored.retry_history == []
    assert stored.edited_url is not None


def test_render_timeout_counts_as_failed_attempt(repository, storage, make_item):
    item = make_item()
    config = ServiceConfig(credential="test-key", call_timeout=0.01)
    renderer = FakeRenderer(delay=1.0)

    asyncio.run(_orchestrator(repository, storage, renderer, ScriptedExtractor(), config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == FAILED
    assert stored.retry_count == 2
    assert stored.error_message
    assert len(renderer.calls) == 3


def test_progress_is_persisted_while_attempt_runs(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    seen: list[tuple[str, int]] = []

    def observe(_instruction: str) -> str:
        current = repository.get_work_item(item.id)
        seen.append((current.status, current.retry_count))
        return GARBLED if len(seen) == 1 else f"{TITLE} {SUBTITLE}"

    extractor = ScriptedExtractor(default=observe)
    asyncio.run(_orchestrator(repository, storage, FakeRenderer(), extractor, config).process(item))

    assert seen == [(PROCESSING, 0), (PROCESSING, 1)]
    assert repository.get_work_item(item.id).retry_count == 1


class _FlakyStorage(InMemoryObjectStorage):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def upload(self, bucket: str, key: str, payload: bytes, content_type: str) -> str:
        if self.failures:
            self.failures -= 1
            raise StorageError(f"Failed to upload {bucket}/{key}: disk full")
        return await super().upload(bucket, key, payload, content_type)


def test_storage_failure_consumes_an_attempt(repository, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    storage = _FlakyStorage(failures=1)
    extractor = ScriptedExtractor([f"{TITLE} {SUBTITLE}"])

    asyncio.run(_orchestrator(repository, storage, FakeRenderer(), extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == COMPLETED
    assert stored.retry_count == 1
    assert stored.edited_url.endswith("_edited_v2.jpg")
    assert list(storage.objects) == [("edited-images", f"{item.project_id}/{item.id}_edited_v2.jpg")]


def test_final_attempt_failure_keeps_earlier_scores(repository, storage, config, make_item):
    item = make_item(title=TITLE, subtitle=SUBTITLE)
    renderer = FakeRenderer(fail_attempts={3})
    extractor = ScriptedExtractor([GARBLED, GARBLED])

    asyncio.run(_orchestrator(repository, storage, renderer, extractor, config).process(item))

    stored = repository.get_work_item(item.id)
    assert stored.status == FAILED
    assert stored.retry_count == 2
    assert stored.error_message == "No image returned from AI gateway"
    assert [entry["attempt"] for entry in stored.retry_history] == [1, 2]
    assert stored.text_accuracy_score == stored.retry_history[-1]["accuracy"]
    assert stored.ocr_extracted_text == GARBLED
    assert len(renderer.calls) == 3
