"""
定时任务调度器服务
使用 APScheduler 每月刷新一次自动登记的关税税率
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.db import session as db_session
from app.services.tariff_service import refresh_auto_tariff_rates

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


async def refresh_tariffs_job():
    """刷新 source=auto 的税率（独立会话、独立事务）"""
    async with db_session.SessionLocal() as db:
        try:
            changes = await refresh_auto_tariff_rates(db)
            await db.commit()
            logger.info(f"✅ 定时刷新关税完成: {len(changes)} 条")
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ 定时刷新关税失败: {str(e)}")


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.TARIFF_AUTO_REFRESH_ENABLED:
        logger.info("⏰ 关税自动刷新已禁用")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        refresh_tariffs_job,
        trigger=CronTrigger(
            day=settings.TARIFF_REFRESH_DAY,
            hour=settings.TARIFF_REFRESH_HOUR,
            minute=0,
        ),
        id="refresh_tariffs",
        name="每月刷新关税税率",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        f"⏰ 定时任务调度器已启动 - 关税刷新时间: 每月 {settings.TARIFF_REFRESH_DAY} 日 "
        f"{settings.TARIFF_REFRESH_HOUR:02d}:00"
    )


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    if not scheduler:
        return {"enabled": settings.TARIFF_AUTO_REFRESH_ENABLED, "running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })
    return {"enabled": settings.TARIFF_AUTO_REFRESH_ENABLED, "running": scheduler.running, "jobs": jobs}
