from livequiz.common import SessionContext, configure_logging
from livequiz.config import DEFAULT_VIEWER_URL, ClientConfig
from livequiz.quiz_types import User, ViewerSession


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig.from_env({})
        assert config.viewer_url == DEFAULT_VIEWER_URL
        assert config.start_poll_interval > config.live_poll_interval

    def test_api_url_feeds_auth_and_builder(self):
        config = ClientConfig.from_env({"LIVEQUIZ_API_URL": "http://api", "LIVEQUIZ_BUILDER_URL": "http://b",
                                        "LIVEQUIZ_TIMEOUT": "2.5"})
        assert config.auth_url == "http://api"
        assert config.builder_url == "http://b"
        assert config.request_timeout == 2.5

    def test_cli_overrides(self):
        config = ClientConfig().with_overrides(api_url="http://x", viewer_url=None)
        assert (config.auth_url, config.builder_url) == ("http://x", "http://x")
        assert config.viewer_url == DEFAULT_VIEWER_URL


class TestSessionContext:
    def test_clear_credentials_notifies(self):
        cleared = []
        context = SessionContext()
        context.on_cleared.append(lambda: cleared.append(True))
        context.login("tok", User(id="1", username="host"))
        context.pending_question_count = 3
        assert context.is_authenticated

        context.clear_credentials()
        assert not context.is_authenticated
        assert context.user is None
        assert context.pending_question_count == 0
        assert cleared == [True]

    def test_join_remembers_name(self):
        context = SessionContext()
        context.join(ViewerSession(token="s", quiz_id=1, name="ana"))
        context.leave()
        assert context.viewer is None
        assert context.remembered_name == "ana"

    def test_question_saved_counts_down(self):
        context = SessionContext(pending_question_count=1)
        context.question_saved()
        context.question_saved()
        assert context.pending_question_count == 0


def test_configure_logging_writes_role_file(tmp_path):
    path = configure_logging("viewer", log_dir=tmp_path)
    assert path == tmp_path / "viewer.log"
    assert path.exists()
