# pyright: reportUnknownMemberType=false, reportUnknownArgumentType=false, reportPrivateUsage=false

import pytest
import requests
from http_dummies import DummyResponse, DummySession, feed_session

import maze_viewer.feed as feed


def test_resource_url_treats_base_as_directory() -> None:
    assert (
        feed.resource_url("http://board.local/game", "maze.dat")
        == "http://board.local/game/maze.dat"
    )
    assert (
        feed.resource_url("http://board.local/game/", "player.dat")
        == "http://board.local/game/player.dat"
    )


def test_read_into_stops_when_buffer_is_full() -> None:
    buf = bytearray(5)

    count = feed.read_into([b"ab", b"", b"cdefg", b"ignored"], buf)

    assert count == 5
    assert bytes(buf) == b"abcde"


def test_read_into_short_stream_keeps_tail() -> None:
    buf = bytearray(b"XXXXXX")

    count = feed.read_into([b"12", b"3"], buf)

    assert count == 3
    assert bytes(buf) == b"123XXX"


def test_decode_positions_is_little_endian() -> None:
    raw = bytes([0x34, 0x12, 0x78, 0x56, 0x00, 0x00, 0x01, 0x00])

    positions = feed.decode_positions(raw)

    assert positions.shape == (2, 2)
    assert positions.tolist() == [[0x1234, 0x5678], [0, 1]]


def test_decode_positions_rejects_partial_pairs() -> None:
    with pytest.raises(ValueError):
        feed.decode_positions(b"\x01\x02\x03")


def test_decode_maze_is_row_major() -> None:
    raw = bytearray(feed.MAZE_BYTES)
    raw[feed.MAZE_COLS + 2] = 0x0F

    grid = feed.decode_maze(raw)

    assert grid.shape == (feed.MAZE_ROWS, feed.MAZE_COLS)
    assert grid[1, 2] == 0x0F
    assert int(grid.sum()) == 0x0F


def test_decode_maze_rejects_wrong_size() -> None:
    with pytest.raises(ValueError):
        feed.decode_maze(b"\x00" * 10)


def test_fetch_resource_disables_caching_and_streams() -> None:
    response = DummyResponse([b"\x01\x02\x03\x04"])
    session = DummySession({"player.dat": response})
    buf = bytearray(4)

    count = feed.fetch_resource(session, "http://h/player.dat", buf, timeout=2.5)

    assert count == 4
    url, kwargs = session.requests[0]
    assert url == "http://h/player.dat"
    assert kwargs["headers"] == feed.NO_CACHE_HEADERS
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 2.5
    assert response.chunk_sizes == [feed.FETCH_CHUNK]
    assert response.closed


def test_fetch_resource_raises_on_http_error() -> None:
    session = DummySession({"maze.dat": DummyResponse([], status=404)})

    with pytest.raises(requests.HTTPError):
        feed.fetch_resource(session, "http://h/maze.dat", bytearray(4))


def test_feed_client_fetches_files_in_order() -> None:
    maze = bytes([3]) * feed.MAZE_BYTES
    monsters = bytes(range(200)) * 2
    player = bytes([12, 0, 24, 0])
    session = feed_session(maze, monsters, player)
    client = feed.FeedClient("http://h/game", session=session, timeout=1.0)
    data = feed.FeedData()

    client.fetch(data)

    assert [url for url, _ in session.requests] == [
        "http://h/game/maze.dat",
        "http://h/game/monster.dat",
        "http://h/game/player.dat",
    ]
    assert bytes(data.maze) == maze
    assert bytes(data.monsters) == monsters
    assert data.player_position() == (12, 24)


def test_feed_client_short_read_keeps_previous_tail() -> None:
    data = feed.FeedData()
    data.maze[:] = bytes([7]) * feed.MAZE_BYTES
    session = feed_session(bytes([1]) * 100, bytes(400), bytes(4))
    client = feed.FeedClient("http://h/", session=session)

    client.fetch(data)

    assert bytes(data.maze[:100]) == bytes([1]) * 100
    assert bytes(data.maze[100:]) == bytes([7]) * (feed.MAZE_BYTES - 100)


def test_feed_client_truncated_stream_leaves_data_untouched() -> None:
    data = feed.FeedData()
    data.maze[:] = bytes([7]) * feed.MAZE_BYTES
    before = data.copy()
    session = DummySession(
        {
            "maze.dat": DummyResponse(
                [bytes([1]) * 100],
                error=requests.exceptions.ChunkedEncodingError("connection broken"),
            ),
        }
    )
    client = feed.FeedClient("http://h/", session=session)

    with pytest.raises(requests.RequestException):
        client.fetch(data)

    assert data == before


def test_feed_client_failure_on_later_file_commits_nothing() -> None:
    data = feed.FeedData()
    session = DummySession(
        {
            "maze.dat": DummyResponse([bytes([5]) * feed.MAZE_BYTES]),
            "monster.dat": DummyResponse([bytes(400)]),
        }
    )
    client = feed.FeedClient("http://h/", session=session)

    with pytest.raises(requests.ConnectionError):
        client.fetch(data)

    assert bytes(data.maze) == bytes(feed.MAZE_BYTES)


def test_feed_client_close_closes_session() -> None:
    session = DummySession({})
    client = feed.FeedClient("http://h/", session=session)

    client.close()

    assert session.closed
