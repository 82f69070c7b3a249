"""Runtime components: scaling, prediction orchestration, lifecycle."""
