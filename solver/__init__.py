"""Shape-packing engine: variants, occupancy grid, backtracking search, region evaluation."""
