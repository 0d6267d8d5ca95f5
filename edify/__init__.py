"""AiEdify backend: AI teaching tools with content safety checks and moderation."""
