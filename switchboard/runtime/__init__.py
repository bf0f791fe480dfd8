"""Runtime orchestration: debouncing, runs, tool calls and the turn pipeline."""
