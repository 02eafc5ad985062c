"""Tests for output sinks."""

import io
import json
from pathlib import Path

import pytest

from lending_core.exceptions import SinkError
from lending_core.models import Loan
from lending_core.sinks import ConsoleSink, JsonFileSink


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_init_default(self) -> None:
        """Test default initialization."""
        sink = ConsoleSink()

        assert sink.pretty is True
        assert sink.max_records is None
        assert sink._counts == {}

    def test_write_batch_dataclass(self, capsys: pytest.CaptureFixture, sample_loan: Loan) -> None:
        """Test writing a batch of loans."""
        sink = ConsoleSink(pretty=False)

        sink.write_batch("loans", [sample_loan])
        captured = capsys.readouterr()

        assert "loans (1 records)" in captured.out
        assert '"requested_amount": "100000.00"' in captured.out
        assert sink._counts["loans"] == 1

    def test_max_records(self, capsys: pytest.CaptureFixture) -> None:
        """Test output is truncated to max_records."""
        sink = ConsoleSink(pretty=False, max_records=2)

        sink.write_batch("rows", [{"id": i} for i in range(5)])
        captured = capsys.readouterr()

        assert '{"id": 1}' in captured.out
        assert '{"id": 2}' not in captured.out
        assert "... and 3 more records" in captured.out

    def test_close_summary(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.write_batch("rows", [{"id": 1}])
        sink.write_batch("rows", [{"id": 2}])
        capsys.readouterr()

        sink.close()
        captured = capsys.readouterr()

        assert "rows: 2 records" in captured.out


class TestJsonFileSink:
    """Tests for JsonFileSink."""

    def test_creates_directory(self, tmp_path: Path) -> None:
        output_dir = tmp_path / "nested" / "out"
        JsonFileSink(output_dir)
        assert output_dir.is_dir()

    def test_write_batch(self, tmp_path: Path, sample_loan: Loan) -> None:
        """Test one JSON array is written per entity type."""
        sink = JsonFileSink(tmp_path, pretty=True)

        sink.write_batch("loans", [sample_loan])

        data = json.loads((tmp_path / "loans.json").read_text(encoding="utf-8"))
        assert data[0]["loan_id"] == sample_loan.loan_id
        assert data[0]["loan_type"] == "PERSONAL"
        assert sink.counts == {"loans": 1}

    def test_rewrite_replaces_file(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)

        sink.write_batch("rows", [{"id": 1}, {"id": 2}])
        sink.write_batch("rows", [{"id": 3}])

        assert json.loads((tmp_path / "rows.json").read_text(encoding="utf-8")) == [{"id": 3}]

    def test_unserializable_record(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)

        with pytest.raises(SinkError, match="Failed to write"):
            sink.write_batch("rows", [{"id": object()}])

    def test_unwritable_path(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)
        (tmp_path / "rows.json").mkdir()

        with pytest.raises(SinkError):
            sink.write_batch("rows", [{"id": 1}])

    def test_close_logs(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        sink = JsonFileSink(tmp_path)
        sink.write_batch("rows", [{"id": 1}])

        with caplog.at_level("INFO", logger="lending_core.sinks.json_file"):
            sink.close()

        assert "rows: 1 records" in caplog.text


class TestConsoleSinkOptions:
    """Tests for ConsoleSink field selection and stream output."""

    def test_fields(self, sample_loan: Loan) -> None:
        stream = io.StringIO()
        sink = ConsoleSink(pretty=False, fields=["loan_id", "status"], stream=stream)

        sink.write_batch("loans", [sample_loan])

        line = stream.getvalue().strip().splitlines()[-1]
        assert json.loads(line) == {"loan_id": sample_loan.loan_id, "status": "ACTIVE"}

    def test_stream(self, capsys: pytest.CaptureFixture) -> None:
        stream = io.StringIO()
        sink = ConsoleSink(stream=stream)

        sink.write_batch("rows", [{"id": 1}])

        assert "rows (1 records)" in stream.getvalue()
        assert capsys.readouterr().out == ""
