"""Tests for the idphoto CLI, run in-process."""

from concurrent.futures import TimeoutError as FutureTimeoutError

import pytest

import idphoto.llm
from idphoto.__main__ import (
    EXIT_FAILED,
    EXIT_OK,
    EXIT_QUOTA,
    _wait_for_session,
    main,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "IDPHOTO_RATE_LIMIT_MAX",
        "IDPHOTO_RATE_LIMIT_WINDOW_SECONDS",
        "IDPHOTO_MAX_ATTEMPTS",
        "IDPHOTO_PROVIDER",
        "IDPHOTO_STATE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def photo(tmp_path, source_png):
    path = tmp_path / "me.png"
    path.write_bytes(source_png)
    return path


@pytest.fixture
def state(tmp_path):
    return tmp_path / "state.db"


@pytest.fixture
def install_backend(monkeypatch, scripted_backend):
    """Make the CLI use a scripted backend instead of a real provider."""

    def _install(images=None, verdicts=None):
        backend = scripted_backend(images=images, verdicts=verdicts)
        monkeypatch.setattr(
            idphoto.llm, "create_image_backend", lambda *args, **kwargs: backend
        )
        return backend

    return _install


class TestMain:
    """Tests for command dispatch."""

    @pytest.mark.unit
    def test_help(self, capsys):
        assert main(["--help"]) == EXIT_OK
        assert "Usage: idphoto" in capsys.readouterr().out

    @pytest.mark.unit
    def test_no_command(self, capsys):
        assert main([]) == EXIT_FAILED
        assert "Commands:" in capsys.readouterr().out

    @pytest.mark.unit
    def test_unknown_command(self):
        assert main(["frobnicate"]) == EXIT_FAILED


class TestEnvCommand:
    """Tests for the env command."""

    @pytest.mark.unit
    def test_masks_api_keys(self, monkeypatch, capsys):
        monkeypatch.setenv("GOOGLE_API_KEY", "very-secret-key")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert main(["env"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "very-secret-key" not in out
        assert "GOOGLE_API_KEY" in out
        assert "Providers with keys: google" in out

    @pytest.mark.unit
    def test_category_filter(self, capsys):
        assert main(["env", "--category", "quota"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "IDPHOTO_RATE_LIMIT_MAX" in out
        assert "IDPHOTO_MAX_ATTEMPTS" not in out


class TestQuotaCommand:
    """Tests for the quota command."""

    @pytest.mark.unit
    def test_empty_state(self, state, capsys):
        assert main(["quota", "--state", str(state)]) == EXIT_OK
        assert "Generations: 0/5" in capsys.readouterr().out

    @pytest.mark.unit
    def test_reports_usage_after_generation(
        self, photo, state, install_backend, capsys
    ):
        install_backend(images=[b"IMG"], verdicts=[True])
        main(["generate", str(photo), "--state", str(state)])
        capsys.readouterr()

        assert main(["quota", "--state", str(state)]) == EXIT_OK

        out = capsys.readouterr().out
        assert "Generations: 1/5" in out
        assert "next slot in" in out


class TestGenerateCommand:
    """Tests for the generate command."""

    @pytest.mark.unit
    def test_success_writes_output(self, photo, state, tmp_path, install_backend):
        backend = install_backend(images=[b"IMG"], verdicts=[True])
        out = tmp_path / "id.png"

        code = main(["generate", str(photo), "-o", str(out), "--state", str(state)])

        assert code == EXIT_OK
        assert out.read_bytes() == b"IMG"
        assert len(backend.verify_calls) == 1

    @pytest.mark.unit
    def test_default_output_name(self, photo, state, install_backend):
        install_backend(images=[b"IMG"], verdicts=[True])
        assert main(["generate", str(photo), "--state", str(state)]) == EXIT_OK
        assert (photo.parent / "me-idphoto.png").read_bytes() == b"IMG"

    @pytest.mark.unit
    def test_exhausted_attempts_fail(self, photo, state, install_backend):
        backend = install_backend()

        code = main(
            ["generate", str(photo), "--attempts", "3", "--state", str(state)]
        )

        assert code == EXIT_FAILED
        assert len(backend.generate_calls) == 3

    @pytest.mark.unit
    def test_quota_exceeded(self, photo, state, install_backend, monkeypatch):
        monkeypatch.setenv("IDPHOTO_RATE_LIMIT_MAX", "1")
        backend = install_backend(images=[b"A", b"B"], verdicts=[True, True])
        args = ["generate", str(photo), "--state", str(state)]

        assert main(args) == EXIT_OK
        assert main(args) == EXIT_QUOTA
        assert len(backend.generate_calls) == 1

    @pytest.mark.unit
    def test_regenerate_writes_variants(self, photo, state, tmp_path, install_backend):
        install_backend(images=[b"A", b"B", b"C"], verdicts=[True, True, True])
        out = tmp_path / "id.png"

        code = main(
            [
                "generate",
                str(photo),
                "-o",
                str(out),
                "--regenerate",
                "2",
                "--state",
                str(state),
            ]
        )

        assert code == EXIT_OK
        assert out.read_bytes() == b"A"
        assert (tmp_path / "id-1.png").read_bytes() == b"B"
        assert (tmp_path / "id-2.png").read_bytes() == b"C"

    @pytest.mark.unit
    def test_cartoon_mode(self, photo, state, install_backend):
        backend = install_backend(images=[b"TOON"])

        code = main(
            [
                "generate",
                str(photo),
                "--cartoon",
                "--cartoon-description",
                "Saber",
                "--state",
                str(state),
            ]
        )

        assert code == EXIT_OK
        assert backend.verify_calls == []
        assert "'Saber'" in backend.generate_calls[0][0]

    @pytest.mark.unit
    def test_missing_image(self, tmp_path, state):
        missing = tmp_path / "nope.png"
        assert main(["generate", str(missing), "--state", str(state)]) == EXIT_FAILED

    @pytest.mark.unit
    def test_non_image_file_rejected(self, tmp_path, state, install_backend):
        document = tmp_path / "notes.txt"
        document.write_text("not a photo")
        install_backend(images=[b"IMG"])

        assert main(["generate", str(document), "--state", str(state)]) == EXIT_FAILED


class _ScriptedFuture:
    """Future whose result() replays raised exceptions, then a value."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.timeouts = []

    def result(self, timeout=None):
        self.timeouts.append(timeout)
        step = self.steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step


class _CancelRecorder:
    """Orchestrator stand-in whose cancel() answers from a script."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def cancel(self):
        self.calls += 1
        return self.answers.pop(0)


class TestInterruptHandling:
    """Tests for Ctrl+C while a session is being waited on."""

    @pytest.mark.unit
    def test_interrupt_during_session_cancels(self):
        future = _ScriptedFuture(KeyboardInterrupt(), "session")
        orchestrator = _CancelRecorder(True)

        assert _wait_for_session(future, orchestrator) == "session"
        assert orchestrator.calls == 1
        assert future.timeouts == [None, None]

    @pytest.mark.unit
    def test_early_interrupt_applies_once_session_starts(self):
        future = _ScriptedFuture(
            KeyboardInterrupt(), FutureTimeoutError(), FutureTimeoutError(), "done"
        )
        orchestrator = _CancelRecorder(False, False, True)

        assert _wait_for_session(future, orchestrator) == "done"
        assert orchestrator.calls == 3
        assert future.timeouts == [None, 0.1, 0.1, None]

    @pytest.mark.unit
    def test_early_interrupt_is_logged(self, caplog):
        future = _ScriptedFuture(KeyboardInterrupt(), "done")
        orchestrator = _CancelRecorder(False)

        with caplog.at_level("WARNING"):
            _wait_for_session(future, orchestrator)

        assert "Session not started yet" in caplog.text
