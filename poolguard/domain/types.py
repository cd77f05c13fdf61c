"""기본 타입 정의 — 모델 전체에서 공유하는 Annotated 타입."""

from typing import Annotated

from pydantic import Field

# 커넥션/카운터: 0 이상 정수
Count = Annotated[int, Field(ge=0)]

# 비율: 0~1 범위 실수 (utilization, 디스크 사용률)
Ratio = Annotated[float, Field(ge=0, le=1)]

# 임계 비율: 0 초과 1 이하
ThresholdRatio = Annotated[float, Field(gt=0, le=1)]

# TCP 포트
Port = Annotated[int, Field(ge=1, le=65535)]
