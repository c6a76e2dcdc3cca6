from pathlib import Path

import pytest

from staticmedia.__main__ import main, makeConfig, parser, pattern
from staticmedia.model import Environment, Regex, Substring
from staticmedia.http.parser import parseQuery


def test_pattern():
	assert pattern("private") == Substring("private")
	assert isinstance(pattern(r"re:\.png$"), Regex)


def test_serve_arguments(root: Path):
	args = parser().parse_args(
		[
			"serve",
			str(root),
			"--mount",
			"/assets",
			"--port",
			"9000",
			"--ext",
			"png",
			"--ext",
			"TXT",
			"--no-etag",
			"--deny",
			"private",
			"--allow",
			"re:^/",
			"--index",
			"default.png",
			"--production",
			"--detailed",
			"--secret",
			"key",
		]
	)
	assert args.port == 9000
	config = makeConfig(args)
	assert config.mount == "/assets/"
	assert config.allowedExtensions == frozenset((".png", ".txt"))
	assert config.etag is False
	assert config.lastModified is True
	assert config.deny == (Substring("private"),)
	assert config.allow and isinstance(config.allow[0], Regex)
	assert config.indexFilenames == ("default.png",)
	assert config.environment is Environment.Production
	assert config.detailedRejections
	assert config.secret == b"key"


def test_serve_defaults(root: Path):
	config = makeConfig(parser().parse_args(["serve", str(root)]))
	assert config.mount == "/media/"
	assert config.etag and config.lastModified
	assert config.allow is None and config.deny is None
	assert ".png" in config.allowedExtensions


def test_invalid_regex(root: Path):
	with pytest.raises(SystemExit):
		parser().parse_args(["serve", str(root), "--deny", "re:("])


def test_sign(root: Path, capsys):
	assert main(["sign", str(root), "/media/hello.png", "--secret", "key"]) == 0
	url = capsys.readouterr().out.strip()
	path, query = url.split("?", 1)
	assert path == "/media/hello.png"
	assert set(parseQuery(query)) == {"sig", "exp"}


def test_sign_errors(root: Path, tmp_path: Path, monkeypatch):
	monkeypatch.setattr("staticmedia.config.SECRET", None)
	assert main(["sign", str(root), "/media/missing.png", "--secret", "key"]) == 1
	assert main(["sign", str(root), "/media/hello.png"]) == 1
	assert main(["sign", str(tmp_path / "nowhere"), "/media/hello.png", "-s", "k"]) == 1


# EOF
