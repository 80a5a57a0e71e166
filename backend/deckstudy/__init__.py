"""Flashcard study service: scheduling core and review-queue construction."""
