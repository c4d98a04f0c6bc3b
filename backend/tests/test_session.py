import pytest

from misspeak.errors import InvalidTransition
from misspeak.session import Session, SessionBuffer, SessionState


def test_buffer_joins_frames_in_arrival_order():
    buffer = SessionBuffer()
    frames = [b"\x1a\x45\xdf\xa3", b"\x00\x01", b"chunk-b", b"\xff" * 3]
    for frame in frames:
        buffer.append(frame)

    assert len(buffer) == 4
    assert buffer.size == sum(len(f) for f in frames)
    assert buffer.consume() == b"".join(frames)


def test_buffer_consumed_only_once():
    buffer = SessionBuffer()
    buffer.append(b"abc")
    buffer.consume()

    assert buffer.consumed
    with pytest.raises(RuntimeError):
        buffer.consume()
    with pytest.raises(RuntimeError):
        buffer.append(b"late")


def test_sessions_get_unique_ids_and_scratch_names():
    first, second = Session(), Session()
    assert first.id != second.id
    assert first.scratch.raw_path != second.scratch.raw_path
    assert first.id in first.scratch.raw_path.name
    assert first.state is SessionState.CAPTURING


def test_first_stop_moves_to_converting():
    session = Session()
    session.add_frame(b"audio")

    assert session.request_stop() is True
    assert session.state is SessionState.CONVERTING


def test_second_stop_is_ignored():
    session = Session()
    session.add_frame(b"audio")
    session.request_stop()

    assert session.request_stop() is False
    assert session.state is SessionState.CONVERTING


def test_stop_without_audio_fails_immediately():
    session = Session()

    assert session.request_stop() is True
    assert session.state is SessionState.FAILED
    assert session.failure_reason == "no_audio"
    assert session.request_stop() is False


def test_frames_after_stop_do_not_touch_buffer():
    session = Session()
    session.add_frame(b"one")
    session.request_stop()

    assert session.add_frame(b"two") is False
    assert session.buffer.size == 3


def test_transitions_only_move_forward():
    session = Session()
    session.add_frame(b"audio")
    session.request_stop()
    session.advance(SessionState.TRANSCRIBING)

    with pytest.raises(InvalidTransition):
        session.advance(SessionState.CONVERTING)
    with pytest.raises(InvalidTransition):
        session.advance(SessionState.COMPLETE)

    session.fail("transcription_error")
    with pytest.raises(InvalidTransition):
        session.advance(SessionState.FAILED)


def test_original_text_set_once_and_transformed_text_appends():
    session = Session()
    session.add_frame(b"audio")
    session.request_stop()
    session.advance(SessionState.TRANSCRIBING)
    session.set_original("")

    with pytest.raises(InvalidTransition):
        session.set_original("again")
    with pytest.raises(InvalidTransition):
        session.append_transformed("too early")

    session.advance(SessionState.TRANSFORMING)
    assert session.append_transformed("a") == "a"
    assert session.append_transformed("b") == "ab"

    session.advance(SessionState.COMPLETE)
    with pytest.raises(InvalidTransition):
        session.append_transformed("c")
