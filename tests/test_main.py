import pytest

from minifetch.__main__ import body, main


def test_body() -> None:
	assert body(None) is None
	assert body('{"a": 1}') == {"a": 1}
	assert body("[1, 2]") == [1, 2]
	assert body("plain text") == "plain text"


def test_usage(capsys: pytest.CaptureFixture[str]) -> None:
	assert main([]) == 2
	assert main(["GET"]) == 2
	assert main(["POST", "http://h/", "a", "b"]) == 2
	assert "Usage" in capsys.readouterr().err


def test_invalid_url() -> None:
	assert main(["GET", "ftp://example.com/"]) == 3
	assert main(["not-a-url"]) == 3


# EOF
