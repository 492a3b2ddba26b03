"""Locally computed holidays used when the remote provider is unavailable."""
from datetime import datetime
from typing import List, Optional

from processor.clock import to_epoch_ms
from processor.models import Event, EventKind, HolidayCategory

# Spring Festival (lunar new year) month-day by Gregorian year.
SPRING_FESTIVALS = {
    2024: '02-10',
    2025: '01-29',
    2026: '02-17',
    2027: '02-06',
    2028: '01-26',
    2029: '02-13',
    2030: '02-03',
}
DEFAULT_SPRING_FESTIVAL = '01-29'

HOLIDAY_COLORS = {
    '春节': 'from-red-600 to-amber-500',
    '元宵节': 'from-orange-500 to-yellow-400',
    '清明节': 'from-emerald-500 to-green-400',
    '劳动节': 'from-blue-500 to-cyan-400',
    '端午节': 'from-teal-500 to-emerald-400',
    '中秋节': 'from-amber-500 to-orange-400',
    '国庆节': 'from-red-500 to-pink-500',
    '元旦': 'from-indigo-500 to-purple-400',
    'default': 'from-violet-500 to-purple-400',
}


def holiday_color(name: str) -> str:
    return HOLIDAY_COLORS.get(name, HOLIDAY_COLORS['default'])


def next_fixed_date(month: int, day: int, now: datetime) -> str:
    """Next occurrence of a fixed month/day, this year unless already passed."""
    this_year = datetime(now.year, month, day)
    year = now.year + 1 if this_year < now else now.year
    return f"{year}-{month:02d}-{day:02d}T00:00:00"


def next_spring_festival(now: datetime) -> str:
    """Next Spring Festival strictly after ``now``."""
    this_year = SPRING_FESTIVALS.get(now.year)
    if this_year and datetime.fromisoformat(f"{now.year}-{this_year}T00:00:00") > now:
        return f"{now.year}-{this_year}T00:00:00"
    next_year = SPRING_FESTIVALS.get(now.year + 1, DEFAULT_SPRING_FESTIVAL)
    return f"{now.year + 1}-{next_year}T00:00:00"


def _holiday(
    event_id: str,
    title: str,
    date: str,
    description: str,
    days_off: int,
    traditions: tuple,
    greeting: str,
    created_at: int,
    category: HolidayCategory = HolidayCategory.PUBLIC
) -> Event:
    return Event(
        id=event_id,
        title=title,
        date=date,
        kind=EventKind.HOLIDAY,
        created_at=created_at,
        color=holiday_color(title),
        description=description,
        holiday_category=category,
        days_off=days_off,
        traditions=traditions,
        greeting=greeting,
    )


def fallback_holidays(now: Optional[datetime] = None) -> List[Event]:
    """
    Compute five well-known holidays relative to ``now``.

    Mid-Autumn and Dragon Boat use approximate fixed dates.

    Args:
        now: Reference instant (defaults to the current local time)

    Returns:
        Holiday events sorted by date ascending
    """
    now = now or datetime.now()
    created_at = to_epoch_ms(now)

    events = [
        _holiday(
            'fallback-spring-festival', '春节', next_spring_festival(now),
            '中国农历新年，是中华民族最重要的传统节日', 7,
            ('贴春联', '放鞭炮', '吃年夜饭', '发红包'), '恭喜发财，新年快乐！', created_at,
        ),
        _holiday(
            'fallback-labour-day', '劳动节', next_fixed_date(5, 1, now),
            '国际劳动节，纪念全世界劳动人民的节日', 5,
            ('休假出游', '劳动表彰'), '劳动节快乐！', created_at,
        ),
        _holiday(
            'fallback-national-day', '国庆节', next_fixed_date(10, 1, now),
            '中华人民共和国国庆节，庆祝新中国成立', 7,
            ('升国旗', '阅兵', '国庆出游'), '国庆节快乐，祖国万岁！', created_at,
        ),
        _holiday(
            'fallback-mid-autumn', '中秋节', next_fixed_date(9, 17, now),
            '团圆佳节，寄托着对家人团聚的美好祝愿', 3,
            ('赏月', '吃月饼', '猜灯谜'), '中秋快乐，阖家团圆！', created_at,
        ),
        _holiday(
            'fallback-dragon-boat', '端午节', next_fixed_date(5, 31, now),
            '纪念屈原的传统节日，驱邪避瘟保健康', 3,
            ('赛龙舟', '吃粽子', '挂艾草'), '端午安康！', created_at,
        ),
    ]

    return sorted(events, key=lambda event: event.target_instant)
