"""Tests for upload error messages and the per-batch error aggregator."""
from conftest import RecordingPresenter

from composer_upload.exceptions import TransferFailure
from composer_upload.reporting import (
    ErrorAggregator,
    ErrorRecord,
    describe_bulk_upload_errors,
    describe_upload_error,
)
from composer_upload.transport import TransferResponse


class TestDescribeUploadError:
    def test_too_large(self):
        message = describe_upload_error(TransferResponse(status=413, body={}), "big.png")
        assert message == "Sorry, the file big.png is too big to upload."

    def test_message_field_wins(self):
        body = {"message": "Custom", "errors": ["ignored"]}
        assert describe_upload_error(TransferResponse(status=422, body=body), "a.png") == "Custom"

    def test_errors_list_joined(self):
        failure = TransferFailure("rejected", status_code=422, body={"errors": ["one", "two"]})
        assert describe_upload_error(failure, "a.png") == "one\ntwo"

    def test_errors_string(self):
        assert describe_upload_error({"errors": "bad file"}, "a.png") == "bad file"

    def test_plain_string(self):
        assert describe_upload_error("network down", "a.png") == "network down"

    def test_exception_text(self):
        assert describe_upload_error(ValueError("cannot decode"), "a.png") == "cannot decode"

    def test_generic_fallback(self):
        expected = "Sorry, there was an error uploading a.png. Please try again."
        assert describe_upload_error(None, "a.png") == expected
        assert describe_upload_error(TransferFailure("rejected", status_code=500, body={}), "a.png") == expected
        assert describe_upload_error(RuntimeError(), "a.png") == expected

    def test_bulk_message_lists_files(self):
        message = describe_bulk_upload_errors([
            ErrorRecord(payload={"errors": ["too wide"]}, file_name="a.png"),
            ErrorRecord(payload=TransferResponse(status=413, body={}), file_name="b.png"),
        ])
        assert message.splitlines() == [
            "Sorry, there were errors uploading the following files:",
            "- a.png: too wide",
            "- b.png: Sorry, the file b.png is too big to upload.",
        ]


class TestErrorAggregator:
    def test_nothing_buffered(self):
        presenter = RecordingPresenter()
        aggregator = ErrorAggregator(presenter)

        assert aggregator.report() is None
        assert presenter.alerts == []

    def test_single_error(self):
        presenter = RecordingPresenter()
        aggregator = ErrorAggregator(presenter)
        aggregator.buffer({"errors": ["bad"]}, "a.png")

        assert aggregator.report() == "bad"
        assert presenter.alerts == ["bad"]

    def test_several_errors_consolidated(self):
        presenter = RecordingPresenter()
        aggregator = ErrorAggregator(presenter)
        aggregator.buffer("first", "a.png")
        aggregator.buffer("second", "b.png")

        aggregator.report()

        assert len(presenter.alerts) == 1
        assert "- a.png: first" in presenter.alerts[0]
        assert "- b.png: second" in presenter.alerts[0]

    def test_clear(self):
        aggregator = ErrorAggregator(RecordingPresenter())
        aggregator.buffer("first", "a.png")
        aggregator.clear()

        assert len(aggregator) == 0
        assert aggregator.report() is None

    def test_default_presenter_logs(self, caplog):
        aggregator = ErrorAggregator()
        aggregator.buffer("first", "a.png")

        aggregator.report()

        assert "Upload alert: first" in caplog.text
