# Order states in which a rental order item counts as paid
PAID_ORDER_STATUSES = ["PAID", "PROCESSING", "SHIPPED", "DELIVERED"]
