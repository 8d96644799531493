"""
Tests for the command-line interface.
"""

import json

import pytest

from ..challenge import decode, token_from_url
from ..cli import main
from ..vision import decode_data_url


def run_encode(capsys, *extra):
    main(["encode", "--items", "cup, chair", "--lat", "59.3293231", "--lng", "18.0685809", *extra])
    out = capsys.readouterr().out
    lines = dict(line.split(":", 1) for line in out.strip().splitlines())
    return lines["Token"].strip(), lines["URL"].strip()


class TestCLI:
    def test_encode(self, capsys):
        token, url = run_encode(capsys, "--base-url", "https://game.example/play")

        record = decode(token).unwrap()
        assert record.items == ("cup", "chair")
        assert record.lat == 59.329323
        assert record.lng == 18.068581
        assert record.photo is None
        assert token_from_url(url) == token

    def test_encode_with_photo(self, capsys, tmp_path, jpeg_bytes):
        photo = tmp_path / "photo.jpg"
        photo.write_bytes(jpeg_bytes)

        token, _ = run_encode(capsys, "--photo", str(photo))

        thumbnail = decode_data_url(decode(token).unwrap().photo)
        assert max(thumbnail.size) <= 160

    def test_encode_missing_photo(self, capsys, tmp_path):
        with pytest.raises(SystemExit):
            main([
                "encode", "--items", "cup", "--lat", "1", "--lng", "2",
                "--photo", str(tmp_path / "missing.jpg"),
            ])
        assert "Could not read image" in capsys.readouterr().out

    def test_decode_url(self, capsys):
        token, url = run_encode(capsys)

        main(["decode", url])

        data = json.loads(capsys.readouterr().out)
        assert data["items"] == ["cup", "chair"]
        assert data["version"] == 2
        assert data["has_photo"] is False

    def test_decode_invalid(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["decode", "not-base64!!"])
        assert exc_info.value.code == 1
        assert "Invalid challenge" in capsys.readouterr().out

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit):
            main([])
