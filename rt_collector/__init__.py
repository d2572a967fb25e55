# rt_collector: binance trade + depth20 → parquet collector
