import httpx

from ci_gantt.action_defs import ActionDefinitions, count_composite_steps, reference_path
from ci_gantt.github_client import GitHubClient

COMPOSITE = """
name: Setup
runs:
  using: composite
  steps:
    - uses: actions/checkout@v4
    - uses: actions/setup-node@v4
      with:
        node-version: 20
    - run: npm ci
      shell: bash
"""

NESTED = """
runs:
  using: composite
  steps:
    - uses: actions/checkout@v4
    - uses: ./.github/actions/other
"""


def test_count_composite_steps():
    assert count_composite_steps(COMPOSITE) == 3


def test_nested_local_action_is_unknown():
    assert count_composite_steps(NESTED) is None


def test_non_composite_and_broken_definitions():
    assert count_composite_steps("runs:\n  using: node20\n  main: index.js\n") is None
    assert count_composite_steps("runs: [unclosed") is None
    assert count_composite_steps("") is None


def test_reference_path():
    assert reference_path("./.github/actions/setup") == ".github/actions/setup"
    assert reference_path("./.github/actions/setup/") == ".github/actions/setup"


def test_falls_back_to_action_yaml_and_caches():
    requested = []

    def loader(path):
        requested.append(path)
        return COMPOSITE if path.endswith("action.yaml") else None

    defs = ActionDefinitions(loader)
    assert defs("./.github/actions/setup") == 3
    assert defs("./.github/actions/setup") == 3
    assert requested == [".github/actions/setup/action.yml", ".github/actions/setup/action.yaml"]


def test_unknown_answers_are_cached_and_logged():
    calls = []
    messages = []

    def loader(path):
        calls.append(path)
        raise httpx.ConnectError("offline")

    defs = ActionDefinitions(loader, log=messages.append)
    assert defs.step_count("./.github/actions/setup") is None
    assert defs.step_count("./.github/actions/setup") is None
    assert len(calls) == 1
    assert messages[0].startswith("[WARN]")


def test_from_directory(tmp_path):
    action_dir = tmp_path / ".github" / "actions" / "setup"
    action_dir.mkdir(parents=True)
    (action_dir / "action.yml").write_text(COMPOSITE, encoding="utf-8")
    defs = ActionDefinitions.from_directory(tmp_path)
    assert defs("./.github/actions/setup") == 3
    assert defs("./.github/actions/missing") is None


def test_undecodable_local_definition_is_unknown(tmp_path):
    action_dir = tmp_path / ".github" / "actions" / "setup"
    action_dir.mkdir(parents=True)
    (action_dir / "action.yml").write_bytes(b"name: caf\xe9\nruns:\n  using: composite\n  steps: []\n")
    messages = []
    defs = ActionDefinitions.from_directory(tmp_path, log=messages.append)
    assert defs("./.github/actions/setup") is None
    assert defs("./.github/actions/setup") is None
    assert messages[0].startswith("[WARN] failed to fetch definition")


def test_malformed_contents_responses_are_unknown():
    def handler(request):
        if "broken-b64" in request.url.path:
            return httpx.Response(200, json={"type": "file", "content": "@@not base64@@"})
        return httpx.Response(200, text="<html>not json</html>")

    client = GitHubClient(transport=httpx.MockTransport(handler))
    defs = ActionDefinitions.from_github(client, "o", "r", "abc123")
    assert defs("./.github/actions/broken-b64") is None
    assert defs("./.github/actions/html") is None
    client.close()
