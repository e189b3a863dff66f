from __future__ import annotations

from conftest import FakeProcess

from talkbridge.process import ProcessDetector, ProcessHandle


def test_handle_reports_liveness_and_identity() -> None:
    process = FakeProcess(name="VoiceEditor.exe", exe="/opt/voice/VoiceEditor.exe")
    handle = ProcessHandle(process, product_name="Voice Editor", title_probe=lambda pid: "Voice Editor")

    assert handle.executable_identity == ("VoiceEditor.exe", "Voice Editor")
    assert handle.executable_path == "/opt/voice/VoiceEditor.exe"
    assert handle.main_window_title == "Voice Editor"
    assert not handle.has_exited
    assert handle.wait_for_exit(0) is False

    handle.terminate()

    assert handle.has_exited
    assert handle.main_window_title is None
    assert handle.wait_for_exit(0) is True


def test_detector_matches_name_with_or_without_extension() -> None:
    detector = ProcessDetector(file_name="VoiceEditor.exe")
    assert detector.matches_name(FakeProcess(name="VoiceEditor.exe"))
    assert detector.matches_name(FakeProcess(name="VoiceEditor"))
    assert not detector.matches_name(FakeProcess(name="Other.exe"))


def test_detect_applies_predicate_and_skips_exited() -> None:
    dead = FakeProcess()
    dead.running = False
    wanted = FakeProcess()
    unwanted = FakeProcess()
    detector = ProcessDetector(predicate=lambda handle: handle.pid != unwanted.pid)

    found = detector.detect([dead, unwanted, wanted])

    assert [handle.pid for handle in found] == [wanted.pid]
