"""AI mail auto-reply: mailbox polling, body normalization, AI reply routing."""
