"""
Default QC thresholds for processed voice clips.
"""
QC_THRESHOLDS = {
    "peak_dbfs_min": -45.0,  # below this the clip is effectively silent
    "peak_dbfs_max": -0.1,  # clipping risk once re-encoded
    "hum_ratio_max": 0.25,  # Max energy share 20-150Hz
    "hiss_ratio_max": 0.15,  # Max energy share 4k-8kHz
}
