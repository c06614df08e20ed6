"""SQLite persistence shared by the memory store and the task repository."""
