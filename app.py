import dataclasses
import logging
import os
from pathlib import Path

import pandas as pd
import streamlit as st

from retail_nlq.data_engine.data_loader import DataLoader
from retail_nlq.engine import RetailQueryEngine, build_executor
from retail_nlq.handlers.error_handler import friendly_error
from retail_nlq.types import ChartHint
from retail_nlq.utils.config_loader import DEFAULT_MODELS, load_config

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="277 BI 資料問答", layout="wide")
st.title("🚲 277 BI 資料問答")

base_cfg = load_config()

with st.sidebar:
    st.header("⚙️ Settings")
    provider = st.selectbox("Provider", list(DEFAULT_MODELS), index=list(DEFAULT_MODELS).index(base_cfg.provider))
    default_model = base_cfg.model if provider == base_cfg.provider else DEFAULT_MODELS[provider]
    model = st.text_input("Model", value=default_model)
    temperature = st.slider("Temperature", 0.0, 1.0, float(base_cfg.temperature), 0.05)
    history_turns = st.number_input("Conversation turns sent as context", 0, 20, int(base_cfg.history_turns), 1)

    st.markdown("---")
    if st.button("♻️ Reset session"):
        st.session_state.clear()
        st.rerun()

cfg = dataclasses.replace(
    base_cfg,
    provider=provider,
    model=model,
    temperature=float(temperature),
    history_turns=int(history_turns),
)
if provider != base_cfg.provider:
    key_var = "GEMINI_API_KEY" if provider == "gemini" else "LLM_API_KEY"
    cfg = dataclasses.replace(cfg, api_key=os.getenv(key_var) or None)

if not cfg.api_key:
    st.warning("API key is not set (GEMINI_API_KEY or LLM_API_KEY). Set it and restart the app.")

if cfg.database_url:
    st.caption("Connected to PostgreSQL (DATABASE_URL).")
    data_key = ("postgres", cfg.database_url)
else:
    uploaded = st.file_uploader("Upload table CSVs (file name = table name)", type=["csv"], accept_multiple_files=True)
    if not uploaded:
        st.info("Upload CSV exports (e.g. member_transactions.csv, store_revenue_daily.csv) to start")
        st.stop()
    data_key = ("duckdb", tuple(sorted(f.name for f in uploaded)))

if st.session_state.get("_data_key") != data_key:
    try:
        executor = build_executor(cfg)
        if not cfg.database_url:
            files = {Path(f.name).stem: f for f in uploaded}
            tables = DataLoader().load_into(executor, files)
            st.session_state["_tables"] = tables
    except Exception as e:
        st.error(friendly_error(e))
        st.stop()
    st.session_state["_data_key"] = data_key
    st.session_state["executor"] = executor
    st.session_state.pop("_settings_key", None)

if st.session_state.get("_tables"):
    st.caption("Tables: " + ", ".join(st.session_state["_tables"]))

settings_key = (cfg.provider, cfg.model, cfg.temperature, cfg.history_turns)
if st.session_state.get("_settings_key") != settings_key:
    st.session_state["_settings_key"] = settings_key
    st.session_state["engine"] = RetailQueryEngine(config=cfg, executor=st.session_state["executor"])

if "chat_history" not in st.session_state:
    st.session_state.chat_history = []


def render_chart(chart_type, rows):
    df = pd.DataFrame(rows).drop(columns=["color"], errors="ignore")
    if chart_type is None or df.empty:
        return
    if chart_type in (ChartHint.BAR, ChartHint.GROUPED_BAR, ChartHint.PIE) and df.shape[1] >= 2:
        st.bar_chart(df.set_index(df.columns[0]), horizontal=chart_type == ChartHint.BAR)
    elif chart_type == ChartHint.LINE and df.shape[1] >= 2:
        st.line_chart(df.set_index(df.columns[0]))
    st.dataframe(df, use_container_width=True)


for msg in st.session_state.chat_history:
    with st.chat_message(msg["role"]):
        st.markdown(msg["content"])

q = st.chat_input("請輸入問題，例如：上個月各門市的營收排名？")
if q:
    prior = list(st.session_state.chat_history)
    st.session_state.chat_history.append({"role": "user", "content": q})
    with st.chat_message("user"):
        st.markdown(q)

    with st.chat_message("assistant"):
        with st.spinner("Thinking..."):
            result = st.session_state.engine.ask_question(q, prior)

        if result.ok:
            st.markdown(result.answer)
        else:
            st.error(result.answer)

        for line in result.insights:
            st.markdown(f"- {line}")

        if result.sql:
            with st.expander("Show SQL"):
                st.code(result.sql, language="sql")
                st.caption(f"{result.query_time_ms} ms")

        if result.chart_data:
            render_chart(result.chart_type, result.chart_data)

    st.session_state.chat_history.append({"role": "assistant", "content": result.answer})
