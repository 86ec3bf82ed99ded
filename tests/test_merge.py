from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
from pypdf import PdfReader

from pdfjoinx import get_pdf_info, merge_documents, merge_pdfs
from pdfjoinx.exceptions import IOFailure, NoContentError, PdfMergeError
from pdfjoinx.merge import utils as merge_utils
from pdfjoinx.merge.merger import PdfMerger
from pdfjoinx.merge.options import MergeOptions


def test_merge_pdfs_creates_output(tmp_path: Path, sample_pdfs: list[Path]) -> None:
    output = tmp_path / "merged.pdf"

    result = merge_pdfs(sample_pdfs, output)

    assert result == output
    assert output.exists()

    info = get_pdf_info(output)
    assert info.num_pages == 2
    assert info.metadata.get("/Title") == "Document One"


def test_merge_documents_helper(tmp_path: Path, sample_pdfs: list[Path]) -> None:
    output = tmp_path / "merged.pdf"
    result = merge_documents(sample_pdfs, output)
    assert result == output


def test_merge_pdfs_no_inputs(tmp_path: Path) -> None:
    output = tmp_path / "out.pdf"
    with pytest.raises(PdfMergeError):
        merge_pdfs([], output)
    assert not output.exists()


def test_merge_pdfs_accepts_option_overrides(tmp_path: Path, sample_pdfs: list[Path]) -> None:
    output = tmp_path / "merged.pdf"

    merge_pdfs(sample_pdfs, output, options=MergeOptions(metadata=False), bookmarks=["One", "Two"])

    reader = PdfReader(str(output))
    assert [item.title for item in reader.outline] == ["One", "Two"]
    assert not reader.metadata or reader.metadata.title is None


def test_merge_bytes_to_stream_leaves_stream_open(content_pdf_bytes: bytes) -> None:
    out = BytesIO()

    result = PdfMerger().merge([content_pdf_bytes] * 5, out)

    assert not out.closed
    assert out.getvalue() == result.data
    assert len(PdfReader(BytesIO(out.getvalue())).pages) == 5


def test_merge_bytes_to_path_creates_parents_and_truncates(
    tmp_path: Path, content_pdf_bytes: bytes
) -> None:
    output = tmp_path / "nested" / "dir" / "merged.pdf"
    output.parent.mkdir(parents=True)
    output.write_bytes(b"stale content " * 10000)

    result = PdfMerger().merge([content_pdf_bytes, content_pdf_bytes], output)

    assert output.read_bytes() == result.data
    assert len(PdfReader(str(output)).pages) == 2


def test_merge_files_to_stream(sample_pdfs: list[Path]) -> None:
    out = BytesIO()

    result = PdfMerger().merge_files(sample_pdfs, out)

    assert result.page_count == 2
    assert len(PdfReader(out).pages) == 2


def test_merge_files_ignores_missing_and_non_regular_paths(
    tmp_path: Path, pdf_factory: Callable[..., Path]
) -> None:
    good = pdf_factory("good.pdf", pages=2)
    corrupt = tmp_path / "corrupt.pdf"
    corrupt.write_bytes(b"%PDF-1.4\nnot really a pdf\n")
    output = tmp_path / "merged.pdf"

    result = PdfMerger().merge_files(
        [None, tmp_path / "missing.pdf", tmp_path, good, str(corrupt)], output
    )

    assert result.page_count == 2
    assert result.documents == 1
    assert [skipped.index for skipped in result.skipped] == [4]


def test_merge_files_strict_mode(tmp_path: Path, pdf_factory: Callable[..., Path]) -> None:
    good = pdf_factory("good.pdf")
    corrupt = tmp_path / "corrupt.pdf"
    corrupt.write_bytes(b"%PDF-1.4\nnot really a pdf\n")

    with pytest.raises(PdfMergeError) as excinfo:
        PdfMerger(strict=True).merge_files([good, corrupt], tmp_path / "out.pdf")

    assert excinfo.value.document_index == 1
    assert not (tmp_path / "out.pdf").exists()


def test_merge_files_with_only_missing_paths(tmp_path: Path) -> None:
    with pytest.raises(NoContentError):
        PdfMerger().merge_files([tmp_path / "a.pdf", None], BytesIO())


def test_sample_merged_five_times(tmp_path: Path, pdf_factory: Callable[..., Path]) -> None:
    sample = pdf_factory("sample.pdf")
    output = tmp_path / "merged-5.pdf"

    PdfMerger().merge_files([sample] * 5, output)

    assert len(PdfReader(str(output)).pages) == 5


def test_stream_write_failure_raises_io_failure(content_pdf_bytes: bytes) -> None:
    class BrokenStream:
        def write(self, data: bytes) -> int:
            raise OSError("disk full")

        def flush(self) -> None:
            pass

    with pytest.raises(IOFailure) as excinfo:
        PdfMerger().merge([content_pdf_bytes], BrokenStream())

    assert isinstance(excinfo.value.cause, OSError)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_unwritable_path_raises_io_failure(tmp_path: Path, content_pdf_bytes: bytes) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")

    with pytest.raises(IOFailure):
        PdfMerger().merge([content_pdf_bytes], blocker / "merged.pdf")


def test_read_failure_raises_io_failure(
    monkeypatch: pytest.MonkeyPatch, sample_pdfs: list[Path]
) -> None:
    def broken_read(self: Path) -> bytes:
        raise OSError("permission denied")

    monkeypatch.setattr(Path, "read_bytes", broken_read)

    with pytest.raises(IOFailure):
        PdfMerger().merge_files(sample_pdfs, BytesIO())


def test_utils_helpers(tmp_path: Path) -> None:
    path = merge_utils.ensure_path("~/example.pdf")
    assert path.is_absolute()

    paths = merge_utils.ensure_iterable(["a.pdf", None, Path("b.pdf")])
    assert paths[1] is None
    assert all(isinstance(item, Path) for item in (paths[0], paths[2]))

    assert merge_utils.is_regular_file(tmp_path) is False
    assert merge_utils.is_regular_file(None) is False
