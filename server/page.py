"""
Browser-side speed test page.

The page downloads ``/<n>m`` with ``fetch`` and a stream reader, samples
throughput every 500 ms into a bounded list of 8 samples, and eases the
displayed figure toward their mean.  Each run owns a session object; the
stop button aborts only the session that is currently active.
"""
from __future__ import annotations

from .constants import DEFAULT_SIZE_MB

_TEMPLATE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Speed Test</title>
<style>
html,body{margin:0;height:100%;background:#fff;color:#000;
  font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,sans-serif}
.main{height:100%;display:flex;flex-direction:column;align-items:center;justify-content:center}
.logo{font-size:64px;font-weight:800;margin-bottom:60px}
.logo span{color:#f48120}
.speed{font-size:140px;font-weight:700;line-height:1}
.unit{margin-top:10px;font-size:26px;font-weight:900;letter-spacing:2px}
.status{margin-top:14px;font-size:14px;color:#888;min-height:18px}
.status.error{color:#c0392b}
.progress{width:320px;height:4px;background:#eee;margin-top:28px;overflow:hidden}
.bar{height:100%;width:0%;background:#f48120;transition:width 120ms linear}
.buttons{position:absolute;bottom:70px;display:flex;gap:26px}
button{padding:14px 42px;border-radius:40px;border:none;font-size:15px;font-weight:600;cursor:pointer}
.start{background:#f48120;color:#fff}
.stop{background:#eee;color:#666}
button:disabled{opacity:.4}
</style>
</head>
<body>
<div class="main">
  <div class="logo">speed<span>stream</span></div>
  <div id="speed" class="speed">0</div>
  <div class="unit">Mbps</div>
  <div id="status" class="status"></div>
  <div class="progress"><div class="bar" id="bar"></div></div>
  <div class="buttons">
    <button class="start" id="start">Start</button>
    <button class="stop" id="stop" disabled>Stop</button>
  </div>
</div>
<script>
const FILE_MB=__DEFAULT_MB__
const TOTAL_BYTES=FILE_MB*1024*1024
const WINDOW_MS=500
const MAX_SAMPLES=8
const SMOOTHING=0.25

const speedEl=document.getElementById('speed')
const barEl=document.getElementById('bar')
const statusEl=document.getElementById('status')
const startBtn=document.getElementById('start')
const stopBtn=document.getElementById('stop')

let active=null

function setStatus(text,isError){
  statusEl.textContent=text
  statusEl.className=isError?'status error':'status'
}

function render(session){
  if(session.samples.length) speedEl.textContent=session.display.toFixed(1)
  barEl.style.width=session.percent+'%'
}

function newSession(){
  return {
    controller:new AbortController(),
    recv:0,
    windowBytes:0,
    windowStart:performance.now(),
    samples:[],
    display:0,
    percent:0,
    status:'running'
  }
}

function record(session,n,now){
  session.recv+=n
  session.windowBytes+=n
  if(now-session.windowStart>=WINDOW_MS){
    const dt=(now-session.windowStart)/1000
    session.samples.push(session.windowBytes*8/1024/1024/dt)
    if(session.samples.length>MAX_SAMPLES) session.samples.shift()
    session.windowBytes=0
    session.windowStart=now
  }
  if(session.samples.length){
    const avg=session.samples.reduce((a,b)=>a+b,0)/session.samples.length
    session.display+=(avg-session.display)*SMOOTHING
  }
  session.percent=Math.min(100,session.recv/TOTAL_BYTES*100)
}

async function readLoop(session){
  const res=await fetch('/'+FILE_MB+'m',{signal:session.controller.signal,cache:'no-store'})
  if(!res.ok) throw new Error('HTTP '+res.status)
  const reader=res.body.getReader()
  while(true){
    const {value,done}=await reader.read()
    if(done) break
    record(session,value.length,performance.now())
    render(session)
  }
  session.status='finished'
  session.percent=100
  render(session)
}

async function start(){
  if(active) return
  const session=newSession()
  active=session
  speedEl.textContent='0'
  barEl.style.width='0%'
  setStatus('testing...',false)
  startBtn.disabled=true
  stopBtn.disabled=false
  try{
    await readLoop(session)
    setStatus('done',false)
  }catch(err){
    if(err.name==='AbortError'){
      session.status='stopped'
      setStatus('stopped',false)
    }else{
      session.status='error'
      setStatus('network error',true)
    }
  }finally{
    if(active===session) active=null
    startBtn.disabled=false
    stopBtn.disabled=true
  }
}

function stop(){
  if(active) active.controller.abort()
}

startBtn.onclick=start
stopBtn.onclick=stop

start()
</script>
</body>
</html>
"""


def render_page(default_mb: int = DEFAULT_SIZE_MB) -> str:
    """Return the page HTML, downloading *default_mb* MiB per run."""
    return _TEMPLATE.replace("__DEFAULT_MB__", str(int(default_mb)))
