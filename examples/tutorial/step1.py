"""Step 1: Your First Route Graph.

This example shows rules, keys and a single resolution.
"""

import routegraph as rg

# Keys name the slots of the graph; the type is checked on every value
radius = rg.key_of(float, "radius")
area = rg.key_of(float, "area")

builder = rg.RouteGraph.builder()

# A root rule has no sources
builder.add(rg.Rule.start(radius, lambda: 2.0))


# Sources are passed positionally, in declaration order
@builder.rule(area, radius)
def circle_area(r: float) -> float:
    return 3.14159 * r * r


routes = builder.build()

if __name__ == "__main__":
    with routes.open(area) as scope:
        print(f"area = {scope.current():.2f}")
        print(f"computed: {', '.join(str(key) for key in scope.owned_keys)}")
