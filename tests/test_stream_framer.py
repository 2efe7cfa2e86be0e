import pytest

from harmony_relay.core.errors import StreamError
from harmony_relay.services.stream_framer import BackendRecord, StreamFramer, iter_records, parse_record

from helpers import chunked, collect, hello_stream, ndjson, run


def frame_all(chunks):
    framer = StreamFramer()
    out = []
    for c in chunks:
        out.extend(framer.feed(c))
    out.extend(framer.finish())
    return out


def test_hello_stream_records():
    assert frame_all([hello_stream()]) == [
        BackendRecord(delta="he"),
        BackendRecord(delta="llo"),
        BackendRecord(done=True, eval_count=2),
    ]


def test_split_at_every_byte_boundary_is_identical():
    raw = (
        '{"message":{"content":"Cmaj7 → Dm7"}}\n'
        '{"message":{"content":"ハーモニー 🎹"}}\n'
        '{"done":true,"eval_count":7}\n'
    ).encode("utf-8")
    whole = frame_all([raw])
    assert len(whole) == 3
    for cut in range(1, len(raw)):
        assert frame_all([raw[:cut], raw[cut:]]) == whole, cut
    assert frame_all([raw[i:i + 1] for i in range(len(raw))]) == whole


def test_multibyte_character_split_across_reads():
    raw = '{"message":{"content":"é"}}\n'.encode("utf-8")
    cut = raw.index("é".encode("utf-8")) + 1  # inside the two-byte sequence
    assert frame_all([raw[:cut], raw[cut:]]) == [BackendRecord(delta="é")]


def test_noise_and_blank_lines_are_dropped():
    raw = b'\n   \nnot json\n[1, 2]\n{"message":{"content":"ok"}}\n'
    assert frame_all([raw]) == [BackendRecord(delta="ok")]


def test_final_record_without_newline():
    raw = b'{"message":{"content":"a"}}\n{"done":true,"eval_count":1}'
    assert frame_all([raw]) == [BackendRecord(delta="a"), BackendRecord(done=True, eval_count=1)]


def test_eval_count_must_be_an_integer():
    assert parse_record('{"done":true,"eval_count":"3"}') == BackendRecord(done=True)
    assert parse_record('{"done":true,"eval_count":true}') == BackendRecord(done=True)


def test_error_record_parsed():
    assert parse_record('{"error":"model not found"}') == BackendRecord(error="model not found")


def test_iter_records_yields_deltas_before_error():
    raw = ndjson({"message": {"content": "he"}}, {"error": "out of memory"}, {"message": {"content": "never"}})
    seen = []

    async def consume():
        async for rec in iter_records(chunked(raw)):
            seen.append(rec)

    with pytest.raises(StreamError) as exc:
        run(consume())
    assert exc.value.message == "out of memory"
    assert seen == [BackendRecord(delta="he")]


def test_iter_records_keeps_reading_after_done():
    raw = ndjson({"message": {"content": "a"}}, {"done": True}, {"message": {"content": "tail"}})
    records = run(collect(iter_records(chunked(raw[:5], raw[5:]))))
    assert [r.delta for r in records] == ["a", "", "tail"]


def test_iter_records_error_in_unterminated_tail():
    with pytest.raises(StreamError):
        run(collect(iter_records(chunked(b'{"error":"late"}'))))
