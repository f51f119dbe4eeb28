from coach.voice.cli import ConsoleView
from coach.voice.transcript import Speaking
from core.state import VoiceSessionState


def test_console_view_prints_settled_lines_once(capsys):
    view = ConsoleView()
    opening = {"from": "assistant", "text": "Tell me about a time you handled conflict."}

    view.on_transcript([opening], Speaking.NONE)
    view.on_transcript([opening, {"from": "user", "text": "We"}], Speaking.USER)
    view.on_transcript([opening, {"from": "user", "text": "We agreed."}], Speaking.NONE)

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "Interviewer: Tell me about a time you handled conflict.",
        "You: We agreed.",
    ]


def test_console_view_reports_failure_and_close(capsys):
    view = ConsoleView()

    view.on_state(VoiceSessionState.FAILED, "Connection lost. Please try reconnecting.")
    assert not view.closed.is_set()
    view.on_state(VoiceSessionState.CLOSED, None)

    assert view.closed.is_set()
    assert "Connection lost" in capsys.readouterr().err
