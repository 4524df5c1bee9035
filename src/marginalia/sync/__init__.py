"""Save-triggered synchronization between documents and notes stores."""
