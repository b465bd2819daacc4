from __future__ import annotations

import threading

import pytest

from sherpa.exceptions import (
    BinaryFileError,
    FileNotFoundInRepositoryError,
    OperationCancelledError,
    RateLimitError,
)
from sherpa.logging import get_logger
from sherpa.models import FileInfo, ResourceLimits
from sherpa.providers.base import (
    call_with_retry,
    decode_text,
    fetch_files,
    file_info_from_bytes,
    read_file_info,
)

LIMITS = ResourceLimits(max_files=100, max_memory_per_file=1024, max_total_memory=1024 * 1024)
LOGGER = get_logger(component="test")


class ClientThrottled(Exception):  # noqa: N818
    pass


def _translate(error: Exception) -> Exception:
    if isinstance(error, ClientThrottled):
        return RateLimitError(message=str(error))
    return error


@pytest.mark.unit
def test_call_with_retry_retries_translated_errors() -> None:
    calls: list[int] = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) < 3:  # noqa: PLR2004
            msg = "slow down"
            raise ClientThrottled(msg)
        return "ok"

    result = call_with_retry(flaky, _translate, max_retries=3, base_delay=0, cancel=None, logger=LOGGER)

    assert result == "ok"
    assert len(calls) == 3


@pytest.mark.unit
def test_call_with_retry_surfaces_untranslated_errors_unchanged() -> None:
    calls: list[int] = []
    error = KeyError("missing")

    def broken() -> str:
        calls.append(1)
        raise error

    with pytest.raises(KeyError) as excinfo:
        call_with_retry(broken, _translate, max_retries=3, base_delay=0, cancel=None, logger=LOGGER)

    assert excinfo.value is error
    assert len(calls) == 1


@pytest.mark.unit
def test_call_with_retry_gives_up_with_the_translated_error() -> None:
    def throttled() -> str:
        msg = "still throttled"
        raise ClientThrottled(msg)

    with pytest.raises(RateLimitError, match="still throttled") as excinfo:
        call_with_retry(throttled, _translate, max_retries=1, base_delay=0, cancel=None, logger=LOGGER)

    assert isinstance(excinfo.value.__cause__, ClientThrottled)


@pytest.mark.unit
def test_file_info_from_bytes_classifies_text_and_binary() -> None:
    text = file_info_from_bytes("src/main.go", b"package main\n")
    binary = file_info_from_bytes("assets/logo.png", b"\x89PNG\x00\x00")

    assert text.name == "main.go"
    assert text.is_text
    assert text.content == "package main\n"
    assert text.size == len(b"package main\n")
    assert binary.name == "logo.png"
    assert binary.is_binary
    assert binary.content == ""
    assert binary.size == 6


@pytest.mark.unit
def test_decode_text_rejects_binary() -> None:
    assert decode_text("a.txt", "héllo".encode()) == "héllo"
    with pytest.raises(BinaryFileError):
        decode_text("logo.png", b"\x00\x01\x02")


@pytest.mark.unit
def test_read_file_info_records_failures() -> None:
    error = FileNotFoundInRepositoryError(path="gone.txt")

    def read() -> bytes:
        raise error

    info = read_file_info(read, "gone.txt", LOGGER)

    assert info.error is error
    assert info.path == "gone.txt"


@pytest.mark.unit
def test_read_file_info_propagates_cancellation() -> None:
    def read() -> bytes:
        raise OperationCancelledError

    with pytest.raises(OperationCancelledError):
        read_file_info(read, "a.txt", LOGGER)


@pytest.mark.unit
def test_fetch_files_aborts_batch_on_cancellation() -> None:
    def fetch_one(path: str) -> FileInfo:
        if path == "b.txt":
            raise OperationCancelledError
        return FileInfo(path=path, name=path, size=1, content="x", is_text=True)

    with pytest.raises(OperationCancelledError):
        fetch_files(fetch_one, ["a.txt", "b.txt", "c.txt"], max_concurrency=2, limits=LIMITS)


@pytest.mark.unit
def test_fetch_files_records_other_errors_per_path() -> None:
    def fetch_one(path: str) -> FileInfo:
        if path == "b.txt":
            raise FileNotFoundInRepositoryError(path=path)
        return FileInfo(path=path, name=path, size=1, content="x", is_text=True)

    infos = fetch_files(
        fetch_one,
        ["a.txt", "b.txt", "c.txt"],
        max_concurrency=2,
        limits=LIMITS,
        cancel=threading.Event(),
        logger=LOGGER,
    )

    assert [i.path for i in infos] == ["a.txt", "b.txt", "c.txt"]
    assert isinstance(infos[1].error, FileNotFoundInRepositoryError)
    assert infos[0].error is None
