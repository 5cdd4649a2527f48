"""Step 3: Errors and Validation.

Missing sources are rejected when building. Cycles are reported by
``validate()`` and raised when a resolution reaches them.
"""

import routegraph as rg

a = rg.key_of(int, "a")
b = rg.key_of(int, "b")

cyclic = (
    rg.RouteGraph.builder()
    .add(rg.Rule.bridge(a, b, lambda x: x + 1))
    .add(rg.Rule.bridge(b, a, lambda x: x - 1))
    .build()
)

if __name__ == "__main__":
    for problem in cyclic.validate():
        print(problem)

    try:
        cyclic.open(a)
    except rg.CyclicRouteError as e:
        print(f"cycle: {e.cycle}")

    try:
        rg.RouteGraph.builder().add(rg.Rule.bridge(a, b, lambda x: x)).build()
    except rg.MissingSourceError as e:
        print(e)

    print(rg.render_dot(cyclic), end="")
