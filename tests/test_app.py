"""End-to-end tests for the HTTP routes and the WebSocket endpoint."""

import json
import time
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app import create_app
from routers.auth import profile_image_filename


@pytest.fixture
def client(tmp_path) -> Iterator[TestClient]:
    """TestClient over an app with its files under tmp_path."""
    app = create_app(
        db_file=str(tmp_path / "data" / "db.json"),
        upload_dir=str(tmp_path / "uploads"),
        user_store="json",
        bcrypt_rounds=4,
    )
    with TestClient(app) as test_client:
        yield test_client


def _signup(client: TestClient, username: str = "alice", password: str = "pw", files=None):
    return client.post(
        "/signup",
        data={"username": username, "password": password},
        files=files,
        follow_redirects=False,
    )


def _receive(ws) -> tuple[str, dict]:
    frame = ws.receive_json()
    return frame["event"], frame["data"]


class TestPages:
    """Tests for the static pages."""

    @pytest.mark.parametrize(("path", "marker"), [("/", "Sign up"), ("/login", "Log in"), ("/chat", "Chat")])
    def test_pages_served(self, client: TestClient, path: str, marker: str) -> None:
        """Test each page route serves its HTML file."""
        response = client.get(path)

        assert response.status_code == 200
        assert marker in response.text

    def test_static_files(self, client: TestClient) -> None:
        """Test public assets are mounted under /static."""
        assert client.get("/static/style.css").status_code == 200

    def test_health(self, client: TestClient) -> None:
        """Test health reports empty messaging state."""
        assert client.get("/health").json() == {"status": "ok", "connections": 0, "rooms": 0}


class TestSignupLogin:
    """Tests for the signup and login flow."""

    def test_signup_redirects_to_login(self, client: TestClient, tmp_path) -> None:
        """Test a successful signup stores the user and redirects."""
        response = _signup(client)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        saved = json.loads((tmp_path / "data" / "db.json").read_text())
        assert saved[0]["username"] == "alice"

    def test_signup_duplicate(self, client: TestClient) -> None:
        """Test signing up twice with one username fails."""
        _signup(client)

        response = _signup(client, password="other")

        assert response.status_code == 400
        assert response.json()["detail"] == "Username already exists"

    def test_signup_with_profile_image(self, client: TestClient, tmp_path) -> None:
        """Test the profile image is stored under its original name."""
        response = _signup(client, files={"profileImage": ("me.png", b"\x89PNG", "image/png")})

        assert response.status_code == 303
        assert (tmp_path / "uploads" / "me.png").read_bytes() == b"\x89PNG"
        saved = json.loads((tmp_path / "data" / "db.json").read_text())
        assert saved[0]["profileImage"] == "me.png"

    @pytest.mark.parametrize("filename", ["..", "uploads/..", "."])
    def test_signup_rejects_unusable_image_name(self, client: TestClient, tmp_path, filename: str) -> None:
        """Test names that resolve to a directory are refused without creating the user."""
        response = _signup(client, files={"profileImage": (filename, b"x", "image/png")})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid profile image filename"
        assert json.loads((tmp_path / "data" / "db.json").read_text()) == []

    def test_login_success(self, client: TestClient) -> None:
        """Test valid credentials redirect to the chat page."""
        _signup(client)

        response = client.post("/login", data={"username": "alice", "password": "pw"}, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/chat?username=alice"

    def test_login_unknown_user(self, client: TestClient) -> None:
        """Test unknown users are rejected."""
        response = client.post("/login", data={"username": "nobody", "password": "pw"})

        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    def test_login_wrong_password(self, client: TestClient) -> None:
        """Test a wrong password is rejected."""
        _signup(client)

        response = client.post("/login", data={"username": "alice", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid password"


class TestWebSocket:
    """Tests for the real-time messaging endpoint."""

    def test_connect_announces_id(self, client: TestClient) -> None:
        """Test the first frame carries the connection id."""
        with client.websocket_connect("/ws?username=alice") as ws:
            event, data = _receive(ws)

            assert event == "connected"
            assert data["username"] == "alice"
            assert client.app.state.registry.exists(data["connection_id"])

    def test_room_and_private_messages(self, client: TestClient) -> None:
        """Test two clients exchanging room and private messages."""
        with client.websocket_connect("/ws?username=alice") as a, client.websocket_connect("/ws") as b:
            a_id = _receive(a)[1]["connection_id"]
            b_id = _receive(b)[1]["connection_id"]

            a.send_json({"type": "joinRoom", "room": "general"})
            assert _receive(a) == ("roomMessage", {"room": "general", "message": f"User {a_id} joined the room", "sender": a_id, "username": "alice"})

            b.send_json({"type": "createRoom", "room": "general"})
            joined = {"room": "general", "message": f"User {b_id} joined the room", "sender": b_id}
            assert _receive(a) == ("roomMessage", joined)
            assert _receive(b) == ("roomMessage", joined)

            a.send_json({"type": "roomMessage", "room": "general", "message": "hi"})
            assert _receive(b) == ("roomMessage", {"room": "general", "message": "hi", "sender": a_id, "username": "alice"})

            b.send_json({"type": "privateMessage", "receiver": a_id, "message": "psst"})
            assert _receive(a) == ("privateMessage", {"sender": b_id, "message": "psst"})

    def test_invalid_frame_returns_error(self, client: TestClient) -> None:
        """Test malformed frames are answered with an error event and the socket stays open."""
        with client.websocket_connect("/ws") as ws:
            _receive(ws)

            ws.send_text("not json")
            event, data = _receive(ws)
            assert event == "error"
            assert data["detail"] == "Invalid event"

            ws.send_json({"type": "joinRoom", "room": "general"})
            assert _receive(ws)[0] == "roomMessage"

    def test_disconnect_cleans_up(self, client: TestClient) -> None:
        """Test closing the socket removes the connection from registry and rooms."""
        with client.websocket_connect("/ws") as ws:
            connection_id = _receive(ws)[1]["connection_id"]
            ws.send_json({"type": "joinRoom", "room": "general"})
            _receive(ws)

        state = client.app.state
        # Server-side cleanup finishes on the app loop after the client closes
        deadline = time.monotonic() + 2
        while state.registry.exists(connection_id) and time.monotonic() < deadline:
            time.sleep(0.01)

        assert not state.registry.exists(connection_id)
        assert state.membership.members_of("general") == set()
        assert not state.transport.is_attached(connection_id)


class TestProfileImageFilename:
    """Tests for profile_image_filename."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("me.png", "me.png"),
            ("photos/me.png", "me.png"),
            ("C:\\photos\\me.png", "me.png"),
            ("..", None),
            (".", None),
            ("dir/", None),
        ],
    )
    def test_filenames(self, raw: str, expected) -> None:
        """Test directory parts are stripped and directory names refused."""
        assert profile_image_filename(raw) == expected
