from live_screensaver.main import parse_args


def test_defaults_run_fullscreen_screensaver():
    args = parse_args([])

    assert not args.configure
    assert not args.windowed
    assert not args.verbose
    assert args.language is None


def test_language_override_flag():
    assert parse_args(["--language", "de"]).language == "de"
    assert parse_args(["--configure", "--verbose"]).configure
