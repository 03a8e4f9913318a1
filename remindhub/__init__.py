"""RemindHub WhatsApp integration service."""
