from mindmesh.preflight import run_preflight


def test_skip_via_environment(monkeypatch):
    monkeypatch.setenv("MINDMESH_SKIP_PREFLIGHT", "1")
    result = run_preflight()
    assert result.ok
    assert "skipped" in result.message


def test_network_dependencies_are_present(monkeypatch):
    monkeypatch.delenv("MINDMESH_SKIP_PREFLIGHT", raising=False)
    result = run_preflight(check_gui=False)
    assert result.ok
