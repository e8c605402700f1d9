"""Order-checkout engine: carts, checkout revalidation, order ledger, payment settlement and fulfillment."""
