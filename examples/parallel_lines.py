"""Example session: a parallel line follows its reference, then the reference is deleted."""

from geoscene import (
    Scene,
    add_line,
    add_parallel_line,
    add_point,
    add_point_on_line,
    delete_line,
    propagate_point,
)


def main() -> None:
    scene = Scene()
    a = add_point(scene, 0.0, 0.0, label="A")
    b = add_point(scene, 10.0, 0.0, label="B")
    p = add_point(scene, 5.0, 5.0, label="P")
    base = add_line(scene, a.id, b.id)
    parallel = add_parallel_line(scene, p.id, base.id)
    add_point_on_line(scene, parallel.id, 8.0, 6.0)

    b.move_to((0.0, 10.0))
    propagate_point(scene, b.id)
    helper = scene.point(parallel.parallel.helper_point)
    print(f"Helper of {parallel.id} after rotating {base.id}: ({helper.x:.3f}, {helper.y:.3f})")

    report = delete_line(scene, base.id)
    print("Removed lines:", report.removed_lines)
    print("Removed points:", report.removed_points)
    print("Remaining:", scene.summary())


if __name__ == "__main__":
    main()
