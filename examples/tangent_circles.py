"""Example session: drag one circle until it touches another."""

import logging

from geoscene import DragSession, ParentRef, Scene, add_circle, add_intersection, add_point


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    scene = Scene()
    o1 = add_point(scene, 0.0, 0.0, label="O")
    r1 = add_point(scene, 5.0, 0.0)
    o2 = add_point(scene, 8.0, 0.0, label="O2")
    r2 = add_point(scene, 13.0, 0.0)
    first = add_circle(scene, o1.id, r1.id)
    second = add_circle(scene, o2.id, r2.id)
    roots = add_intersection(scene, ParentRef("circle", first.id), ParentRef("circle", second.id))

    print("Before drag:")
    for point in roots:
        print(f"  {point.id}: ({point.x:.6f}, {point.y:.6f})")

    snapshots = []
    session = DragSession(scene, history=snapshots.append)
    session.begin("circle", second.id, o2.pos)
    for step in range(1, 5):
        session.move((8.0 + 0.5 * step, 0.0))
    changed = session.end()

    print("\nAfter drag (changed: %s, history entries: %d)" % (", ".join(changed), len(snapshots)))
    for point in roots:
        state = "hidden" if point.hidden else "visible"
        print(f"  {point.id}: ({point.x:.6f}, {point.y:.6f}) {state}")


if __name__ == "__main__":
    main()
