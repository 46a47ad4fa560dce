#!/usr/bin/env python3
"""
Shadow DOM Snapshot Example
===========================

This example shows how Tether indexes interactive elements, including
those inside open shadow roots, and prints the tree the way an agent
would see it.

Usage:
    python examples/shadow_dom_snapshot.py [URL]
"""

import sys

from tether import BrowserSession, TetherConfig
from tether.core.driver_factory import driver_context


def main():
    """Snapshot a page and list indexed elements."""
    url = sys.argv[1] if len(sys.argv) > 1 else "https://example.com"

    print("=" * 60)
    print("Tether - Shadow DOM Snapshot")
    print("=" * 60)
    print()

    config = TetherConfig(highlight_elements=True)

    with driver_context(config) as driver:
        print(f"Navigating to: {url}")
        driver.get(url)

        session = BrowserSession(driver, config)
        state = session.get_state()
        print(f"Page title: {state.title}")
        print(f"Indexed elements: {len(state.selector_map)}")
        print()

        shadow = [n for n in state.selector_map.values() if n.shadow_root]
        print(f"  In or hosting a shadow root: {len(shadow)}")
        print()

        print("Agent view:")
        print("-" * 40)
        print(state.tree.clickable_elements_to_string())
        print()

        for index in sorted(state.selector_map)[:10]:
            node = state.selector_map[index]
            handle = session.locate_element(node)
            found = "found" if handle is not None else "not found"
            print(f"  [{index}] <{node.tag}> {found} via {session.locator.last_strategy}")

        input("Highlights are drawn. Press Enter to close...")
        session.remove_highlights()


if __name__ == "__main__":
    main()
