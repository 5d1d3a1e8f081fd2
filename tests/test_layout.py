from mindmesh.layout import AnchorRegistry, Connector, compute_connectors, node_at
from mindmesh.viewport import Viewport


def mount_all(tree, width=100, height=40):
    registry = AnchorRegistry()
    for n in tree:
        registry.mount(n.id, width, height)
    return registry


def test_one_connector_per_mounted_pair(sample_tree):
    connectors = compute_connectors(sample_tree, Viewport(), mount_all(sample_tree))
    pairs = {(c.parent_id, c.child_id) for c in connectors}
    assert pairs == {("r", "a"), ("r", "b"), ("a", "a1"), ("a", "a2")}


def test_connectors_skip_unmounted_nodes(sample_tree):
    registry = mount_all(sample_tree)
    registry.unmount("a")
    pairs = {(c.parent_id, c.child_id) for c in compute_connectors(sample_tree, Viewport(), registry)}
    assert pairs == {("r", "b")}


def test_connector_joins_screen_space_centers(sample_tree):
    viewport = Viewport(zoom=2.0, pan_x=10, pan_y=20)
    connectors = compute_connectors(sample_tree, viewport, mount_all(sample_tree))
    link = next(c for c in connectors if c.child_id == "a")
    # r at (0, 0), a at (0, 100), both 100x40
    assert link.start == (110, 60)
    assert link.end == (110, 260)


def test_connector_control_points_share_midpoint_x():
    link = Connector.between("p", "c", (0, 0), (100, 50))
    assert link.control1 == (50, 0)
    assert link.control2 == (50, 50)
    assert link.to_svg_path() == "M0,0 C50,0 50,50 100,50"


def test_registry_prune(sample_tree):
    registry = mount_all(sample_tree)
    registry.mount("ghost", 10, 10)
    registry.prune(sample_tree)
    assert "ghost" not in registry
    assert len(registry) == 5


def test_node_at_hits_in_canvas_space(sample_tree):
    registry = mount_all(sample_tree)
    viewport = Viewport(zoom=2.0, pan_x=10, pan_y=20)
    # a occupies canvas (0..100, 100..140)
    assert node_at(sample_tree, viewport, registry, 30, 230) == "a"
    assert node_at(sample_tree, viewport, registry, 500, 500) is None
