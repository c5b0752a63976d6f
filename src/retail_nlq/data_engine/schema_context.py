from __future__ import annotations

SCHEMA_VERSION = "2026-02-04"

TRANSACTION_TABLE = "member_transactions"
CATEGORY_COLUMN = "transaction_type"
CATEGORY_VALUE = "收銀"
CATEGORY_VALUES = ("收銀", "銷貨", "銷退")
RETURN_CATEGORY = "銷退"
DISPATCH_CATEGORY = "銷貨"

STORES = ("台南", "高雄", "台中", "台北", "美術")

DB_SCHEMA = f"""
## PostgreSQL schema (277 Bicycle, version {SCHEMA_VERSION})

### store_revenue_daily  (門市每日營收，含非會員)
- store: varchar(50)  values: {", ".join(STORES)}
- revenue_date: date
- revenue: numeric(12,2)  ERP 完整營收（含非會員）
- product_count: integer
- UNIQUE(store, revenue_date)
- 營收查詢優先使用此表，數字與 ERP 報表一致

### member_transactions  (會員消費明細, ~79k rows)
- member_phone: varchar(20) NOT NULL
- store: varchar(50)  values: {", ".join(STORES)}
- transaction_type: varchar(20)  values: {", ".join(CATEGORY_VALUES)}
- member_name: varchar(100)
- transaction_date: date
- product_id: varchar(50)
- product_name: varchar(200)
- price: numeric(12,2)
- quantity: integer
- total: numeric(12,2)
- order_number: varchar(50)
- UNIQUE(order_number, product_id)

### unified_members  (會員主表, ~11.7k rows)
- phone: varchar(20) UNIQUE NOT NULL
- name: varchar(100)
- line_user_id: varchar(50)  NULL = 未綁定 LINE
- total_spent: numeric(12,2)
- tainan_spent / kaohsiung_spent / taichung_spent / taipei_spent / meishu_spent: numeric(12,2)
- member_level: varchar(20)  values: normal, silver, gold, vip
- store: varchar(50)
- created_at: timestamp  資料同步時間，不是入會日期

### inventory  (商品庫存)
- product_id: varchar(50) NOT NULL
- product_name: varchar(200)
- store: varchar(50)
- price: numeric(12,2)
- quantity: integer
- vendor_code: varchar(50)
- UNIQUE(product_id, store)

### purchase_summary  (進貨彙總)
- product_id, product_name, supplier
- unit_cost: numeric(12,2), total_qty: integer, total_cost: numeric(12,2)
- period_start: date, period_end: date

### repairs  (維修記錄)
- repair_id, customer_name, customer_phone, store
- repair_date: date
- status: varchar(20)  values: 維修中, 已完修, 已通知, 已取件
- balance: numeric(12,2)

### customer_orders  (客訂記錄)
- order_id, customer_name, customer_phone, store
- order_date: date
- product_name: text
- status: varchar(20)  values: 未到, 已到, 已通知, 已取件
- balance: numeric(12,2)

## Transaction types
- 收銀: POS 結帳，營收報表唯一計算的類型
- 銷貨: 特殊出貨/調撥，不計入營收
- 銷退: 退貨退款，不計入營收
- 營收查詢必須加 transaction_type = '{CATEGORY_VALUE}'

## Member levels
- vip >= 500,000 / gold >= 200,000 / silver >= 50,000 / normal < 50,000

## New members
- 「新會員」以 member_transactions 的首次交易日期計算
- 禁止使用 unified_members.created_at 計算新會員
"""
